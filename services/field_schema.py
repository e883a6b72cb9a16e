"""
Field schema for the sample spreadsheet exchange.

Single source of truth for column order, header text and recognized header
labels. Import (header resolution), export and template generation all read
from FIELD_SCHEMA so the three layouts cannot drift apart.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class FieldType(str, Enum):
    """Semantic type of a canonical field, selects the coercion rule."""
    TEXT = 'text'
    INTEGER = 'integer'
    DECIMAL = 'decimal'
    DATE = 'date'
    CATEGORY = 'category'
    PLATFORMS = 'platforms'
    BOOLEAN = 'boolean'
    IMAGE = 'image'


@dataclass(frozen=True)
class FieldSpec:
    """
    One canonical field of a Sample record.

    Attributes:
        key: Sample attribute name
        field_type: Semantic type used by the coercion layer
        header: Canonical header text (import template)
        labels: Header substrings recognized on import, checked in order.
                Empty means the field is export-only.
        width: Column width in characters
        required: Whether import rejects rows lacking this field
        export_header: Header text used by the export sheet, if different
        template_hint: Annotation appended to the template header
        example: Placeholder value for the template example row
    """
    key: str
    field_type: FieldType
    header: str
    labels: Tuple[str, ...] = ()
    width: int = 15
    required: bool = False
    export_header: Optional[str] = None
    template_hint: Optional[str] = None
    example: Any = None

    @property
    def importable(self) -> bool:
        return bool(self.labels)

    @property
    def template_header(self) -> str:
        text = self.header
        if self.required:
            text = f"{text} *"
        if self.template_hint:
            text = f"{text} ({self.template_hint})"
        return text


# Order matters: header resolution checks fields top-to-bottom and the first
# field with a matching label wins the column.
FIELD_SCHEMA: Tuple[FieldSpec, ...] = (
    FieldSpec('id', FieldType.TEXT, 'ID', width=10),
    FieldSpec('name', FieldType.TEXT, '产品名称', ('产品名称',), width=30,
              required=True, example='示例: 高保湿面霜'),
    FieldSpec('brand_name', FieldType.TEXT, '品牌', ('品牌',), example='示例品牌'),
    FieldSpec('category', FieldType.CATEGORY, '分类', ('分类',), example='美妆护肤'),
    FieldSpec('location_code', FieldType.TEXT, '货架位置', ('货架位置',),
              required=True, example='A-01-01'),
    FieldSpec('stock_quantity', FieldType.INTEGER, '库存', ('库存',), width=10, example=50),
    FieldSpec('price', FieldType.DECIMAL, '直播价', ('直播价',), width=12, example=299),
    FieldSpec('commission_rate', FieldType.DECIMAL, '佣金率', ('佣金率',), width=10, example=20),
    FieldSpec('mechanism', FieldType.TEXT, '机制', ('机制',), width=25, example='买一送一'),
    FieldSpec('platform', FieldType.PLATFORMS, '平台', ('平台',), width=20,
              template_hint='逗号分隔', example='抖音, 快手'),
    FieldSpec('specs', FieldType.TEXT, '规格', ('规格',), example='50ml'),
    FieldSpec('entry_date', FieldType.DATE, '入库时间', ('入库时间',),
              template_hint='YYYY-MM-DD'),
    FieldSpec('tracking_number', FieldType.TEXT, '快递单号', ('快递单号',), width=20,
              example='SF123456789'),
    FieldSpec('business_contact', FieldType.TEXT, '商务对接', ('商务对接',), example='小王'),
    FieldSpec('merchant_contact', FieldType.TEXT, '商家对接', ('商家对接',), example='李总'),
    FieldSpec('merchant_phone', FieldType.TEXT, '商家电话', ('商家电话',), example='13800138000'),
    FieldSpec('remarks', FieldType.TEXT, '备注', ('备注',), width=30,
              example='这是示例数据，请删除'),
    FieldSpec('image_url', FieldType.IMAGE, '图片链接', ('图片链接', '产品图片'), width=18,
              export_header='产品图片', example='https://example.com/image.jpg'),
    FieldSpec('procurement_price', FieldType.DECIMAL, '集采价', ('集采价',), width=12, example=199),
    FieldSpec('include_shipping_fee', FieldType.BOOLEAN, '含运费', ('运费',), width=10, example='否'),
    FieldSpec('is_free_shipping', FieldType.BOOLEAN, '包邮', ('包邮',), width=10, example='是'),
    FieldSpec('assistant_anchor', FieldType.TEXT, '助播', ('助播',), example='小李'),
    FieldSpec('selection_count', FieldType.INTEGER, '选品次数', ('选品次数',), width=10, example=0),
)

FIELDS_BY_KEY: Dict[str, FieldSpec] = {spec.key: spec for spec in FIELD_SCHEMA}

# Fixed column order of the export sheet
EXPORT_COLUMNS: Tuple[str, ...] = (
    'id', 'image_url', 'name', 'brand_name', 'category', 'location_code',
    'stock_quantity', 'price', 'commission_rate', 'mechanism', 'platform',
    'specs', 'entry_date', 'tracking_number', 'business_contact',
    'merchant_contact', 'merchant_phone', 'remarks',
)

REQUIRED_FIELDS: Tuple[str, ...] = tuple(spec.key for spec in FIELD_SCHEMA if spec.required)


def get_field(key: str) -> FieldSpec:
    """Look up a field spec by canonical key."""
    return FIELDS_BY_KEY[key]


def export_fields() -> List[FieldSpec]:
    """Field specs in export column order."""
    return [FIELDS_BY_KEY[key] for key in EXPORT_COLUMNS]


def template_fields() -> List[FieldSpec]:
    """Importable field specs in template column order."""
    return [spec for spec in FIELD_SCHEMA if spec.importable]


def label_patterns() -> List[Tuple[str, str]]:
    """Ordered (field key, label substring) pairs used for header matching."""
    return [(spec.key, label) for spec in FIELD_SCHEMA for label in spec.labels]
