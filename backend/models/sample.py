"""
Sample record model for the live-commerce warehouse.

This module defines the closed category/platform enumerations and the
immutable Sample record exchanged between the record store and the
spreadsheet codec.
"""

import uuid
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    """Product category. OTHER is the sink for unrecognized values."""
    CLOTHING = '服饰内衣'
    BEAUTY = '美妆护肤'
    JEWELRY = '珠宝文玩'
    FOOD = '食品饮料'
    SHOES_BAGS = '鞋靴箱包'
    HOME = '智能家居'
    ELECTRONICS = '3C数码'
    PERSONAL_CARE = '个护家清'
    BABY = '母婴宠物'
    SPORTS = '运动户外'
    WATCHES_ACCESSORIES = '钟表配饰'
    FRESH_FOOD = '生鲜'
    BOOKS_EDUCATION = '图书教育'
    GIFTS_CREATIVE = '礼品文创'
    FLOWERS_GARDENING = '鲜花园艺'
    TOYS_INSTRUMENTS = '玩具乐器'
    SECOND_HAND = '二手商品'
    VIRTUAL_RECHARGE = '虚拟充值'
    AUTOMOTIVE = '汽车整车'
    LOCAL_LIFE = '本地生活'
    LUXURY = '奢侈品'
    MEDICAL_HEALTH = '医疗健康'
    HEALTH_SUPPLEMENTS = '滋补保健'
    ALCOHOL = '酒类'
    OTHER = '其他'


class Platform(str, Enum):
    """Live-streaming platform. OTHER is the sink for unrecognized values."""
    DOUYIN = '抖音'
    KUAISHOU = '快手'
    TAOBAO = '淘宝'
    CHANNELS = '视频号'
    PINDUODUO = '拼多多'
    PRIVATE_DOMAIN = '私域直播'
    OTHER = '其他'


DEFAULT_CATEGORY = Category.OTHER
DEFAULT_PLATFORM = Platform.OTHER


def generate_sample_id() -> str:
    """Generate a random opaque sample identifier."""
    return uuid.uuid4().hex[:12]


class Sample(BaseModel):
    """
    One inventory item tracked by the warehouse.

    Records are immutable: the codec only ever creates new ones. JSON
    serialization uses camelCase aliases (``stockQuantity``, ``locationCode``).
    """

    id: str = Field(default_factory=generate_sample_id, min_length=1)
    name: str = Field(..., description="Product name")
    brand_name: str = ''
    category: Category = DEFAULT_CATEGORY
    image_url: str = Field('', description="Inline data URI or remote URL")
    entry_date: date = Field(default_factory=date.today)

    # Warehouse
    location_code: str = Field(..., description="Shelf-Row-Bin, e.g. A-01-02")
    stock_quantity: int = Field(0, ge=0)
    tracking_number: Optional[str] = None

    # Live stream
    price: float = Field(0.0, ge=0)
    commission_rate: float = Field(0.0, description="Percent as plain number, 20 means 20%")
    mechanism: str = ''
    platform: List[Platform] = Field(default_factory=lambda: [DEFAULT_PLATFORM], min_length=1)
    selection_count: int = Field(0, ge=0)
    specs: str = ''

    # Business & merchant
    business_contact: str = ''
    merchant_contact: str = ''
    merchant_phone: str = ''
    procurement_price: Optional[float] = Field(None, ge=0)
    include_shipping_fee: bool = False
    is_free_shipping: bool = True
    assistant_anchor: str = ''

    remarks: str = ''
    remark_images: List[str] = Field(default_factory=list)

    class Config:
        frozen = True
        populate_by_name = True
        alias_generator = to_camel
        json_schema_extra = {
            "example": {
                "id": "3f9a1c2b7d4e",
                "name": "高保湿面霜",
                "brandName": "示例品牌",
                "category": "美妆护肤",
                "imageUrl": "https://example.com/image.jpg",
                "entryDate": "2025-10-15",
                "locationCode": "A-01-01",
                "stockQuantity": 50,
                "price": 299,
                "commissionRate": 20,
                "mechanism": "买一送一",
                "platform": ["抖音", "快手"],
                "specs": "50ml"
            }
        }

    @property
    def platform_label(self) -> str:
        """Platforms joined the way the spreadsheet shows them."""
        return ', '.join(p.value for p in self.platform)
