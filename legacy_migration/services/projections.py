"""Built-in projections of the legacy shop-task database onto the new schema.

Legacy table names are given without the dump's table prefix (``tfkz_`` by
default, see ``MigrationConfig.table_prefix``). Column manifests follow the
``CREATE TABLE`` column order of the legacy dump.
"""

from typing import Any, Dict, List, Optional

from ..models.schema import (
    ColumnMapping,
    EntityKind,
    MigrationStage,
    ProjectionCatalog,
    TableProjection,
    TransformType,
)

MAX_MERCHANT_AMOUNT = 99999999

ORDER_STATUS = {
    "0": "IN_PROGRESS",
    "1": "COMPLETED",
    "2": "CANCELLED",
    "3": "WAITING_DELIVERY",
    "4": "WAITING_RECEIVE",
    "5": "WAITING_REFUND",
    "6": "WAITING_REFUND",
}

SHOP_PLATFORM = {
    "1": "TAOBAO",
    "2": "TMALL",
}


def _col(
    target: str,
    source: Optional[str] = None,
    transform: TransformType = TransformType.DIRECT,
    config: Optional[Dict[str, Any]] = None,
    default: Any = None
) -> ColumnMapping:
    return ColumnMapping(
        target_column=target,
        source_column=source,
        transform=transform,
        transform_config=config or {},
        default_value=default,
    )


def _ref(target: str, source: str, kind: EntityKind, required: bool = False) -> ColumnMapping:
    return ColumnMapping(target_column=target, source_column=source, references=kind, required=required)


def _text(target: str, source: str, default: Any = None) -> ColumnMapping:
    return _col(target, source, TransformType.TEXT, default=default)


def _number(target: str, source: str, default: Any = 0) -> ColumnMapping:
    return _col(target, source, TransformType.NUMBER, default=default)


def _is_one(target: str, source: str, **config) -> ColumnMapping:
    return _col(target, source, TransformType.EQUALS, {"value": 1, **config})


def _epoch(target: str, source: str) -> ColumnMapping:
    return _col(target, source, TransformType.EPOCH_TO_ISO)


def _timestamp(target: str, source: str) -> ColumnMapping:
    """Epoch column falling back to the migration time."""
    return _col(target, source, TransformType.EPOCH_TO_ISO, {"default_now": True})


def _now(target: str = "updatedAt") -> ColumnMapping:
    return _col(target, transform=TransformType.NOW)


def _constant(target: str, value: Any) -> ColumnMapping:
    return _col(target, transform=TransformType.CONSTANT, config={"value": value})


BANKS = TableProjection(
    kind=EntityKind.BANK,
    legacy_table="bank",
    target_table="banks",
    legacy_columns=["id", "bank_name", "bank_logo", "state", "create_time"],
    column_mappings=[
        _col("name", "bank_name"),
        _col("icon", "bank_logo"),
        _constant("code", None),
        _constant("sort", 0),
        _is_one("isActive", "state"),
        _timestamp("createdAt", "create_time"),
    ],
    stage=MigrationStage.LOOKUP,
    natural_keys=[["name"]],
    description="Bank dictionary",
)

DELIVERIES = TableProjection(
    kind=EntityKind.DELIVERY,
    legacy_table="delivery",
    target_table="deliveries",
    legacy_columns=["id", "delivery_name", "delivery_code", "state", "create_time"],
    column_mappings=[
        _col("name", "delivery_name"),
        _col("code", "delivery_code"),
        _is_one("isActive", "state"),
        _timestamp("createdAt", "create_time"),
        _now(),
    ],
    stage=MigrationStage.LOOKUP,
    natural_keys=[["name"]],
    description="Courier companies",
)

USERS = TableProjection(
    kind=EntityKind.USER,
    legacy_table="users",
    target_table="users",
    legacy_columns=[
        "id", "username", "password", "mobile", "qq", "vip", "vip_time", "deposit",
        "reward", "frozen_deposit", "frozen_reward", "invite_code", "tjuser", "note",
        "state", "create_time",
    ],
    column_mappings=[
        _col("username", "username"),
        _col("password", "password"),
        # users without a phone number get a unique TEMPnnnnnnnn placeholder
        _col("phone", "mobile", TransformType.PLACEHOLDER, {"prefix": "TEMP", "width": 8}),
        _text("qq", "qq"),
        _is_one("vip", "vip"),
        _epoch("vipExpireAt", "vip_time"),
        _number("balance", "deposit"),
        _number("silver", "reward"),
        _number("frozenBalance", "frozen_deposit"),
        _number("frozenSilver", "frozen_reward"),
        _col("invitationCode", "invite_code", TransformType.GENERATE_CODE, {"length": 8}),
        _ref("referrerId", "tjuser", EntityKind.USER),
        _col("isActive", "state", TransformType.EQUALS, {"value": 2, "negate": True}),
        _col("isBanned", "state", TransformType.EQUALS, {"value": 2}),
        _timestamp("createdAt", "create_time"),
        _now(),
    ],
    stage=MigrationStage.OWNING,
    natural_keys=[["username"]],
    description="Buyer accounts (shoppers)",
)

MERCHANTS = TableProjection(
    kind=EntityKind.MERCHANT,
    legacy_table="seller",
    target_table="merchants",
    legacy_columns=[
        "id", "seller_name", "invite_code", "login_pwd", "pay_pwd", "mobile", "tjuser",
        "tjuser_state", "qq", "vip", "vip_time", "last_time", "balance", "reward",
        "arrears", "tj_award", "tj_award_day", "head_img", "logins_ip", "state",
        "create_time", "update_time", "delete_time", "note", "msg_type", "look_time",
    ],
    column_mappings=[
        _col("username", "seller_name"),
        _col("password", "login_pwd"),
        _text("phone", "mobile", default="00000000000"),
        _text("qq", "qq"),
        _col("balance", "balance", TransformType.CLAMP, {"max": MAX_MERCHANT_AMOUNT}, default=0),
        _constant("frozen_balance", 0),
        _col("silver", "reward", TransformType.CLAMP, {"max": MAX_MERCHANT_AMOUNT}, default=0),
        _is_one("vip", "vip"),
        _epoch("vip_expire_at", "vip_time"),
        _col("status", "state"),
        _timestamp("created_at", "create_time"),
        _now("updated_at"),
    ],
    stage=MigrationStage.OWNING,
    natural_keys=[["username"]],
    description="Sellers",
)

SHOPS = TableProjection(
    kind=EntityKind.SHOP,
    legacy_table="shop",
    target_table="shops",
    legacy_columns=[
        "id", "seller_id", "link", "type", "shop_name", "wangwang", "name", "mobile",
        "province", "city", "area", "address", "state", "cause", "create_time",
        "update_time", "delete_time", "logistics", "sheng", "shi", "qu", "code",
    ],
    column_mappings=[
        _ref("sellerId", "seller_id", EntityKind.MERCHANT, required=True),
        _col("platform", "type", TransformType.ENUM_MAP, {"mapping": SHOP_PLATFORM, "default": "OTHER"}),
        _col("shopName", "shop_name"),
        _col("accountName", "wangwang", TransformType.COALESCE, {"columns": ["shop_name"]}),
        _col("contactName", "name", default="N/A"),
        _text("mobile", "mobile", default="N/A"),
        _col("province", "province"),
        _col("city", "city"),
        _col("detailAddress", "address"),
        _col("url", "link"),
        _is_one("status", "state", true="1", false="0"),
        _is_one("needLogistics", "logistics"),
        _col("expressCode", "code"),
        _timestamp("createdAt", "create_time"),
        _timestamp("updatedAt", "update_time"),
    ],
    natural_keys=[["sellerId", "shopName"]],
    description="Seller shops",
)

BUYER_ACCOUNTS = TableProjection(
    kind=EntityKind.BUYER_ACCOUNT,
    legacy_table="user_buyno",
    target_table="buyer_accounts",
    legacy_columns=[
        "id", "wwid", "wwpro", "wwcity", "wwdaimg", "ipimg", "addressname", "addresspro",
        "addresscity", "addressarea", "addresstext", "addressphone", "alipayname",
        "idcardimg", "alipayimg", "state", "creat_time", "uid", "note", "detail_address",
        "frozen_time", "star",
    ],
    column_mappings=[
        _ref("userId", "uid", EntityKind.USER),
        _col("accountName", "wwid"),
        _col("wangwangProvince", "wwpro"),
        _col("wangwangCity", "wwcity"),
        _col("archiveImage", "wwdaimg"),
        _col("ipImage", "ipimg"),
        _col("receiverName", "addressname"),
        _col("province", "addresspro"),
        _col("city", "addresscity"),
        _col("district", "addressarea"),
        _col("addressRemark", "addresstext"),
        _text("receiverPhone", "addressphone"),
        _col("alipayName", "alipayname"),
        _col("idCardImage", "idcardimg"),
        _col("alipayImage", "alipayimg"),
        _col("status", "state"),
        _epoch("frozenTime", "frozen_time"),
        _number("star", "star", default=1),
        _col("fullAddress", "detail_address"),
        _col("rejectReason", "note"),
        _timestamp("createdAt", "creat_time"),
        _now(),
    ],
    natural_keys=[["userId", "accountName"]],
    description="Shopping-platform accounts owned by buyers",
)

GOODS = TableProjection(
    kind=EntityKind.GOODS,
    legacy_table="goods",
    target_table="goods",
    legacy_columns=[
        "id", "seller_id", "name", "shop_id", "goods_key_id", "link", "taobao_id",
        "number", "pc_img", "mobile_img_a", "mobile_img_b", "spec_name", "spec_value",
        "price", "num", "show_price", "state", "create_time", "update_time",
    ],
    column_mappings=[
        _ref("sellerId", "seller_id", EntityKind.MERCHANT, required=True),
        _ref("shopId", "shop_id", EntityKind.SHOP, required=True),
        _col("name", "name"),
        _col("link", "link"),
        _col("pcImg", "pc_img"),
        _number("price", "price"),
        _number("num", "num", default=1),
        _col("showPrice", "show_price", TransformType.COALESCE, {"columns": ["price"]}, default=0),
        _is_one("state", "state", true=1, false=0),
        _timestamp("createdAt", "create_time"),
        _timestamp("updatedAt", "update_time"),
    ],
    natural_keys=[["shopId", "name"]],
    description="Products listed by sellers",
)

NOTICES = TableProjection(
    kind=EntityKind.NOTICE,
    legacy_table="notice",
    target_table="notices",
    legacy_columns=["id", "title", "content", "state", "admin_id", "type", "create_time", "update_time"],
    column_mappings=[
        _col("title", "title"),
        _col("content", "content"),
        _constant("type", 1),
        _is_one("target", "type", true=1, false=2),
        _is_one("status", "state", true=1, false=0),
        _constant("sort", 0),
        _constant("isTop", False),
        _constant("isPopup", False),
        _timestamp("createdAt", "create_time"),
        _timestamp("updatedAt", "update_time"),
    ],
    stage=MigrationStage.LOOKUP,
    natural_keys=[["title", "createdAt"], ["title", "content"]],
    description="Site announcements",
)

TASKS = TableProjection(
    kind=EntityKind.TASK,
    legacy_table="seller_task",
    target_table="tasks",
    legacy_columns=[
        "id", "task_number", "rand_num", "seller_id", "shop_id", "task_type", "goods_id",
        "terminal", "goods_unit_price", "goods_num", "goods_spec", "plan_name", "tao_word",
        "qr_code", "channel_name", "channel_img", "memo", "is_free_shiping", "postage",
        "margin", "weight", "add_reward", "is_timing_pay", "timing_time", "timing_pay",
        "is_timing_publish", "publish_time", "timing_publish_pay", "union_interval",
        "union_interval_time", "receipt_time", "is_cycle_time", "cycle_time", "cycle",
        "is_praise", "praise_fee", "is_img_praise", "img_praise_fee", "is_video_praise",
        "video_praise_fee", "create_time", "update_time", "delete_time", "cancel_time",
        "complete_time", "goods_price", "goods_money", "num", "incomplete_num",
        "complete_num", "postage_money", "deposit", "silver_ingot", "status", "state",
        "service_price", "goods_more_fee", "refund_service_price", "phone_fee", "pc_fee",
        "remarks", "examine_time", "next_day", "next_day_fee", "user_divided", "address",
        "shop_name", "pay_state", "pay_time", "yajin", "yinding", "is_shengji", "step",
        "is_repay", "repay", "is_ys", "ys_time", "yf_price", "wk_price",
    ],
    column_mappings=[
        _col("taskNumber", "task_number"),
        _ref("merchantId", "seller_id", EntityKind.MERCHANT, required=True),
        _number("taskType", "task_type", default=1),
        _number("terminal", "terminal", default=1),
        _constant("url", None),
        _col("shopName", "shop_name"),
        _col("taoWord", "tao_word"),
        _col("memo", "memo"),
        _is_one("isFreeShipping", "is_free_shiping"),
        _number("margin", "margin"),
        _number("addReward", "add_reward"),
        _is_one("isTimingPublish", "is_timing_publish"),
        _epoch("publishTime", "publish_time"),
        _number("unionInterval", "union_interval"),
        _number("cycle", "cycle"),
        _is_one("isPraise", "is_praise"),
        _number("praiseFee", "praise_fee"),
        _is_one("isImgPraise", "is_img_praise"),
        _number("imgPraiseFee", "img_praise_fee"),
        _is_one("isVideoPraise", "is_video_praise"),
        _number("videoPraiseFee", "video_praise_fee"),
        _number("goodsPrice", "goods_price"),
        _number("goodsMoney", "goods_money"),
        _number("count", "num", default=1),
        _number("incompleteCount", "incomplete_num"),
        _number("completedCount", "complete_num"),
        _number("shippingFee", "postage"),
        _number("totalDeposit", "deposit"),
        _number("totalCommission", "silver_ingot"),
        _number("status", "status", default=1),
        _number("baseServiceFee", "service_price"),
        _number("goodsMoreFee", "goods_more_fee"),
        _number("refundServiceFee", "refund_service_price"),
        _number("phoneFee", "phone_fee"),
        _col("remark", "remarks"),
        _epoch("examineTime", "examine_time"),
        _number("nextDayFee", "next_day_fee"),
        _epoch("payTime", "pay_time"),
        _is_one("isPresale", "is_ys"),
        _number("yfPrice", "yf_price"),
        _number("wkPrice", "wk_price"),
        _timestamp("createdAt", "create_time"),
        _timestamp("updatedAt", "update_time"),
    ],
    stage=MigrationStage.RELATIONSHIP,
    natural_keys=[["taskNumber"]],
    description="Tasks published by sellers",
)

ORDERS = TableProjection(
    kind=EntityKind.ORDER,
    legacy_table="user_task",
    target_table="orders",
    legacy_columns=[
        "id", "user_id", "seller_id", "shop_id", "seller_task_id", "task_number",
        "goods_id", "goods_unit_price", "goods_num", "user_buyno_id",
        "user_buyno_wangwang", "principal", "commission", "user_principal",
        "seller_principal", "terminal", "delivery", "delivery_status", "delivery_num",
        "delivery_state", "delivery_time", "sign_for_time", "create_time", "update_time",
        "delete_time", "cancel_time", "state", "keywordimg", "chatimg", "else_link1",
        "else_link2", "table_order_id", "consignee", "order_detail_img",
        "high_praise_img", "complete_time", "address", "shipping_address", "shop_name",
        "task_type", "deltask_type", "ending_time", "task_step", "user_divided",
        "addressname", "addressphone", "cancel_reason", "upload_order_time",
        "platform_refund_time", "step_two_complete", "text_praise", "img_praise",
        "video_praise", "high_praise_time", "key_id", "key", "ids", "fahuo_time",
        "cancel_remarks",
    ],
    column_mappings=[
        _ref("taskId", "seller_task_id", EntityKind.TASK),
        _ref("userId", "user_id", EntityKind.USER),
        _ref("buynoId", "user_buyno_id", EntityKind.BUYER_ACCOUNT),
        _col("buynoAccount", "user_buyno_wangwang", default="N/A"),
        _col("taskTitle", "shop_name", default="未命名任务"),
        _constant("platform", "淘宝"),
        _col("productName", "shop_name", default="N/A"),
        _number("productPrice", "principal"),
        _number("commission", "commission"),
        _col("status", "state", TransformType.ENUM_MAP, {"mapping": ORDER_STATUS, "default": "PENDING"}),
        _number("deliveryState", "delivery_state"),
        _text("delivery", "delivery"),
        _text("deliveryNum", "delivery_num"),
        _number("userPrincipal", "user_principal"),
        _number("sellerPrincipal", "seller_principal"),
        _constant("prepayAmount", 0),
        _number("finalAmount", "principal"),
        _constant("refundAmount", 0),
        _col("keywordImg", "keywordimg"),
        _col("chatImg", "chatimg"),
        _col("orderDetailImg", "order_detail_img"),
        _col("highPraiseImg", "high_praise_img"),
        _text("taobaoOrderNumber", "table_order_id"),
        _col("addressName", "addressname"),
        _text("addressPhone", "addressphone"),
        _col("address", "address"),
        _col("praiseContent", "text_praise"),
        _col("cancelRemarks", "cancel_reason"),
        _epoch("completedAt", "complete_time"),
        _epoch("cancelTime", "cancel_time"),
        _timestamp("createdAt", "create_time"),
        _timestamp("updatedAt", "update_time"),
        _constant("totalSteps", 5),
    ],
    stage=MigrationStage.RELATIONSHIP,
    natural_keys=[["userId", "taobaoOrderNumber"], ["userId", "createdAt"]],
    description="Buyer orders taken against tasks",
)

MESSAGES = TableProjection(
    kind=EntityKind.MESSAGE,
    legacy_table="message",
    target_table="messages",
    legacy_columns=[
        "id", "type", "title", "content", "create_time", "state", "uid", "user_type",
        "sender", "related_id",
    ],
    column_mappings=[
        _constant("senderId", "system"),
        _constant("senderType", 0),
        # user_type 1 is a buyer, anything else a seller
        ColumnMapping(
            target_column="receiverId",
            source_column="uid",
            reference_selector={"column": "user_type", "kinds": {"1": "users"}, "default": "merchants"},
        ),
        _is_one("receiverType", "user_type", true=1, false=2),
        _number("type", "type", default=1),
        _col("title", "title", default="系统消息"),
        _col("content", "content", default=""),
        _is_one("status", "state", true=1, false=0),
        _text("relatedId", "related_id"),
        _timestamp("createdAt", "create_time"),
        _now(),
    ],
    stage=MigrationStage.RELATIONSHIP,
    natural_keys=[["receiverId", "title", "createdAt"]],
    description="Site messages to buyers and sellers",
)

BANK_CARDS = TableProjection(
    kind=EntityKind.BANK_CARD,
    legacy_table="user_bank",
    target_table="bank_cards",
    legacy_columns=[
        "id", "uid", "bank_id", "account_name", "province", "city", "branch_name",
        "card_number", "phone", "id_card", "id_card_front_image", "id_card_back_image",
        "create_time", "update_time", "delete_time", "status", "reject_reason", "note",
    ],
    column_mappings=[
        _ref("userId", "uid", EntityKind.USER),
        _col(
            "bankName",
            "bank_id",
            TransformType.LOOKUP,
            {"kind": EntityKind.BANK.value, "table": "banks", "column": "name"},
            default="未知银行",
        ),
        _col("accountName", "account_name"),
        _col("cardNumber", "card_number"),
        _text("phone", "phone"),
        _col("province", "province"),
        _col("city", "city"),
        _col("branchName", "branch_name"),
        _col("idCard", "id_card"),
        _col("idCardFrontImage", "id_card_front_image"),
        _col("idCardBackImage", "id_card_back_image"),
        _constant("isDefault", False),
        _number("status", "status"),
        _col("rejectReason", "reject_reason"),
        _timestamp("createdAt", "create_time"),
        _timestamp("updatedAt", "update_time"),
    ],
    natural_keys=[["userId", "cardNumber"]],
    description="Buyer withdrawal bank cards",
)

DEFAULT_PROJECTIONS: List[TableProjection] = [
    BANKS,
    DELIVERIES,
    USERS,
    MERCHANTS,
    SHOPS,
    BUYER_ACCOUNTS,
    GOODS,
    NOTICES,
    TASKS,
    ORDERS,
    MESSAGES,
    BANK_CARDS,
]


def build_default_catalog() -> ProjectionCatalog:
    """Catalog with every built-in projection, in declaration order."""
    catalog = ProjectionCatalog(
        name="legacy-shop-tasks",
        version="1.0",
        description="Legacy shop-task MySQL dump to the order management PostgreSQL schema",
    )
    for projection in DEFAULT_PROJECTIONS:
        catalog.add(projection)
    return catalog
