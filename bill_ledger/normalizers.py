"""Raw platform records → Canonical Transaction View.

Each supported platform has a :class:`PlatformProfile` describing its account
defaults and classifier quirks, and a row mapper that encodes its field names
and sign conventions:

- expenses are negative, income keeps the exported (positive) value;
- transfers/repayments map both legs through the account mapper, leave the
  category empty and carry the transfer's own sign, except repayments which
  are always outflows (negative);
- category resolution always receives ``(type, product, counterparty,
  abs(amount))``.

Normalization is lenient: missing fields are treated as ``""``, an
unparseable date becomes ``None`` and an unparseable amount becomes ``0``.
Callers that need every row placed in a month must check ``date``
themselves (see :func:`bill_ledger.api.import_bill`).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser

from .accounts import AccountMapper, NoMatchPolicy
from .categories import JD_CATEGORY_MAP, CategoryClassifier, RuleBasedClassifier
from .config import MappingConfig
from .ctv import CanonicalTransaction
from .logging_setup import get_logger
from .models import RawRecord, UnknownPlatformError
from .smart_category import SmartCategoryModel, SmartClassifier

INCOME = "收入"
EXPENSE = "支出"
NOT_COUNTED = "不计收支"
REPAYMENT_MARKER = "还款"

# Descriptions of rows paid through a family card belong to someone else's
# ledger and are skipped (Alipay and WeChat only).
DEFAULT_EXCLUDED_DESCRIPTION_MARKERS: tuple[str, ...] = ("亲情卡",)

_CURRENCY_PREFIXES = ("¥", "￥", "$", "RMB", "CNY")
_PAREN_SUFFIX_RE = re.compile(r"[(（].*$")
_TIME_RE = re.compile(r"\d{1,2}:\d{2}")

_logger = get_logger("bill_ledger.normalizers")


# ---------------------------------------------------------------------------
# Platform profiles
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlatformProfile:
    """Static per-platform settings."""

    name: str
    display_name: str
    default_account: str
    on_no_match: NoMatchPolicy
    formats: tuple[str, ...]
    platform_categories: Mapping[str, str] = field(default_factory=dict)
    ignored_types: frozenset[str] = frozenset()


PLATFORMS: dict[str, PlatformProfile] = {
    "alipay": PlatformProfile(
        name="alipay",
        display_name="支付宝",
        default_account="支付宝余额",
        on_no_match="sentinel",
        formats=("csv",),
    ),
    "wechat": PlatformProfile(
        name="wechat",
        display_name="微信",
        default_account="微信零钱",
        on_no_match="passthrough",
        formats=("csv", "xlsx"),
    ),
    "jd": PlatformProfile(
        name="jd",
        display_name="京东",
        default_account="京东账户",
        on_no_match="passthrough",
        formats=("csv",),
        platform_categories=JD_CATEGORY_MAP,
    ),
    "icost": PlatformProfile(
        name="icost",
        display_name="icost",
        default_account="微信零钱",
        on_no_match="passthrough",
        formats=("csv", "xlsx"),
        ignored_types=frozenset({"红包"}),
    ),
}


def get_platform(name: str) -> PlatformProfile:
    """Return the profile for ``name`` or raise :class:`UnknownPlatformError`."""

    key = (name or "").strip().lower()
    try:
        return PLATFORMS[key]
    except KeyError:
        supported = ", ".join(sorted(PLATFORMS))
        raise UnknownPlatformError(f"unknown platform {name!r} (supported: {supported})") from None


# ---------------------------------------------------------------------------
# Helpers (amount/date normalization)
# ---------------------------------------------------------------------------


def _to_decimal(raw: str | None, *, strip_paren_suffix: bool = False) -> Decimal:
    """Parse an exported amount leniently; unparseable values become ``0``."""

    s = (raw or "").strip()
    if strip_paren_suffix:
        s = _PAREN_SUFFIX_RE.sub("", s).strip()
    negative = False
    if s.startswith("-"):
        negative = True
        s = s[1:].lstrip()
    elif s.startswith("+"):
        s = s[1:].lstrip()
    for prefix in _CURRENCY_PREFIXES:
        if s.startswith(prefix):
            s = s[len(prefix) :].lstrip()
            break
    s = s.replace(",", "")
    if not s:
        return Decimal(0)
    try:
        d = Decimal(s)
    except InvalidOperation:
        _logger.warning("Unparseable amount %r treated as 0", raw)
        return Decimal(0)
    return -d if negative else d


def _parse_datetime(raw: str | None) -> datetime | None:
    s = (raw or "").strip()
    if not s:
        return None
    try:
        return date_parser.parse(s)
    except (ValueError, OverflowError):
        _logger.warning("Unparseable date %r", raw)
        return None


def _has_time_of_day(raw: str | None) -> bool:
    return bool(_TIME_RE.search(raw or ""))


def _expense(d: Decimal) -> Decimal:
    return -abs(d)


# ---------------------------------------------------------------------------
# Classifier wiring
# ---------------------------------------------------------------------------


def build_classifier(
    profile: PlatformProfile,
    config: MappingConfig,
    *,
    smart_model: SmartCategoryModel | None = None,
) -> CategoryClassifier:
    """Return the rule classifier for ``profile``, wrapped by the smart model if given."""

    rules = RuleBasedClassifier(
        config.category_map,
        platform_categories=profile.platform_categories,
        ignored_types=profile.ignored_types,
    )
    if smart_model is None:
        return rules
    return SmartClassifier(smart_model, fallback=rules)


def build_account_mapper(profile: PlatformProfile, config: MappingConfig) -> AccountMapper:
    return AccountMapper(
        config.account_map,
        default_account=profile.default_account,
        on_no_match=profile.on_no_match,
    )


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class BillNormalizer:
    """Normalize one platform's raw records into canonical transactions.

    Usage
    -----
    normalizer = BillNormalizer.from_config("alipay", config)
    rows = normalizer.normalize(records)  # -> list[CanonicalTransaction]
    """

    def __init__(
        self,
        platform: str | PlatformProfile,
        *,
        accounts: AccountMapper,
        classifier: CategoryClassifier,
        excluded_description_markers: Iterable[str] = DEFAULT_EXCLUDED_DESCRIPTION_MARKERS,
    ) -> None:
        self.profile = platform if isinstance(platform, PlatformProfile) else get_platform(platform)
        self.accounts = accounts
        self.classifier = classifier
        self.excluded_description_markers = tuple(excluded_description_markers)
        self._row_mapper = {
            "alipay": self._alipay,
            "wechat": self._wechat,
            "jd": self._jd,
            "icost": self._icost,
        }[self.profile.name]

    @classmethod
    def from_config(
        cls,
        platform: str | PlatformProfile,
        config: MappingConfig,
        *,
        smart_model: SmartCategoryModel | None = None,
        excluded_description_markers: Iterable[str] = DEFAULT_EXCLUDED_DESCRIPTION_MARKERS,
    ) -> BillNormalizer:
        profile = platform if isinstance(platform, PlatformProfile) else get_platform(platform)
        return cls(
            profile,
            accounts=build_account_mapper(profile, config),
            classifier=build_classifier(profile, config, smart_model=smart_model),
            excluded_description_markers=excluded_description_markers,
        )

    def normalize(self, records: Iterable[RawRecord]) -> list[CanonicalTransaction]:
        return list(self.iter_normalized(records))

    def iter_normalized(self, records: Iterable[RawRecord]) -> Iterator[CanonicalTransaction]:
        dropped = 0
        for r in records:
            # Skip blank rows (all values empty)
            if all(not (v or "").strip() for v in r.values()):
                continue
            tx = self._row_mapper(r)
            if tx is None:
                dropped += 1
                continue
            yield tx
        if dropped:
            _logger.info("%s: dropped %d rows during normalization", self.profile.name, dropped)

    # ---- shared pieces ------------------------------------------------------

    def _is_excluded(self, description: str) -> bool:
        return any(marker in description for marker in self.excluded_description_markers)

    def _classify(self, transaction_type: str, product: str, counterparty: str, amount: Decimal) -> str:
        return self.classifier.classify(transaction_type, product, counterparty, float(abs(amount)))

    # ---- provider-specific mappers -----------------------------------------

    def _alipay(self, r: RawRecord) -> CanonicalTransaction | None:
        # Headers: 交易时间, 交易分类, 交易对方, 对方账号, 商品说明, 收/支, 金额,
        # 收/付款方式, 交易状态, 交易订单号, 商家订单号, 备注
        description = r.get("商品说明", "")
        if self._is_excluded(description):
            return None
        when = _parse_datetime(r.get("交易时间"))
        direction = r.get("收/支", "")
        tx_type = r.get("交易分类", "")
        counterparty = r.get("交易对方", "")
        magnitude = _to_decimal(r.get("金额"))
        account = self.accounts.map(r.get("收/付款方式"))

        if direction in (INCOME, EXPENSE):
            return CanonicalTransaction(
                date=when.date() if when else None,
                description=description,
                account=account,
                amount=_expense(magnitude) if direction == EXPENSE else magnitude,
                category=self._classify(tx_type, description, counterparty, magnitude),
            )
        return CanonicalTransaction(
            date=when.date() if when else None,
            description=description,
            account=account,
            amount=_expense(magnitude) if REPAYMENT_MARKER in description else magnitude,
            transfer_account=self.accounts.map(counterparty),
        )

    def _wechat(self, r: RawRecord) -> CanonicalTransaction | None:
        # Headers: 交易时间, 交易类型, 交易对方, 商品, 收/支, 金额(元), 支付方式,
        # 当前状态, 交易单号, 商户单号, 备注
        product = r.get("商品", "")
        tx_type = r.get("交易类型", "")
        description = tx_type if product == "/" else product
        if self._is_excluded(description):
            return None
        when = _parse_datetime(r.get("交易时间"))
        direction = r.get("收/支", "")
        counterparty = r.get("交易对方", "")
        magnitude = _to_decimal(r.get("金额(元)"))
        account = self.accounts.map(r.get("支付方式"))

        if direction in (INCOME, EXPENSE):
            return CanonicalTransaction(
                date=when.date() if when else None,
                description=description,
                account=account,
                amount=_expense(magnitude) if direction == EXPENSE else magnitude,
                category=self._classify(tx_type, product, counterparty, magnitude),
            )
        return CanonicalTransaction(
            date=when.date() if when else None,
            description=description,
            account=account,
            amount=_expense(magnitude) if REPAYMENT_MARKER in description else magnitude,
            transfer_account=self.accounts.map(counterparty),
        )

    def _jd(self, r: RawRecord) -> CanonicalTransaction | None:
        # Headers: 交易时间, 商户名称, 交易说明, 金额, 收/付款方式, 交易状态, 收/支,
        # 交易分类, 交易订单号, 商家订单号, 备注
        direction = r.get("收/支", "")
        if direction == NOT_COUNTED:
            return None
        when = _parse_datetime(r.get("交易时间"))
        description = r.get("交易说明", "")
        merchant = r.get("商户名称", "")
        magnitude = _to_decimal(r.get("金额"), strip_paren_suffix=True)
        return CanonicalTransaction(
            date=when.date() if when else None,
            description=description,
            account=self.accounts.map(r.get("收/付款方式")),
            # Anything not explicitly income is booked as an expense.
            amount=magnitude if direction == INCOME else _expense(magnitude),
            counterparty=merchant,
            category=self._classify(r.get("交易分类", ""), description, merchant, magnitude),
            note=r.get("备注", ""),
        )

    def _icost(self, r: RawRecord) -> CanonicalTransaction | None:
        # Headers: 日期, 类型, 金额, 一级分类, 二级分类, 账户1, 账户2, 备注, 货币,
        # 标签
        raw_when = r.get("日期")
        when = _parse_datetime(raw_when)
        tx_type = r.get("类型", "")
        primary = r.get("一级分类", "")
        secondary = r.get("二级分类", "")
        description = primary + secondary
        magnitude = _to_decimal(r.get("金额"))
        common = {
            "date": when.date() if when else None,
            "time": when.time() if when and _has_time_of_day(raw_when) else None,
            "tags": r.get("标签", ""),
        }

        if tx_type in ("转账", REPAYMENT_MARKER):
            repayment = tx_type == REPAYMENT_MARKER or REPAYMENT_MARKER in description
            return CanonicalTransaction(
                description=description,
                account=self.accounts.map(r.get("账户2")),
                transfer_account=self.accounts.map(r.get("账户1")),
                amount=_expense(magnitude) if repayment else magnitude,
                **common,
            )

        category = self._classify(primary, secondary, "", magnitude)
        if tx_type == EXPENSE:
            amount = _expense(magnitude)
        else:
            amount = magnitude
            if tx_type == "退款入账":
                description = f"{category} 的退款"
        return CanonicalTransaction(
            description=description,
            account=self.accounts.map(r.get("账户1")),
            amount=amount,
            category=category,
            **common,
        )


__all__ = [
    "BillNormalizer",
    "DEFAULT_EXCLUDED_DESCRIPTION_MARKERS",
    "PLATFORMS",
    "PlatformProfile",
    "build_account_mapper",
    "build_classifier",
    "get_platform",
]
