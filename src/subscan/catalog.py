"""Static pattern catalogs used by the detection engine.

Everything here is built once at import and never mutated. Components take
a :class:`Catalog` so tests can substitute their own lists.

Ordering matters: services are tried first to last and the first match
wins, so more specific patterns must precede looser ones (or the looser one
must exclude them with a negative lookahead).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from subscan.models import BillingCycle, Category


def _rx(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class ServicePattern:
    """A known subscription service."""

    pattern: re.Pattern[str]
    name: str
    category: Category
    sender_patterns: tuple[re.Pattern[str], ...] = ()
    subject_patterns: tuple[re.Pattern[str], ...] = ()
    color: str | None = None


@dataclass(frozen=True)
class PricePattern:
    """Currency-tagged amount pattern; group 1 captures the number."""

    pattern: re.Pattern[str]
    currency: str


@dataclass(frozen=True)
class CyclePattern:
    pattern: re.Pattern[str]
    cycle: BillingCycle


@dataclass(frozen=True)
class KnownApp:
    """App whose multi-word name the item-splitting heuristic gets wrong.

    ``pattern`` matches ``"<app name> <item name>"`` with the app name in
    group 1 and the item name in group 2.
    """

    name: str
    pattern: re.Pattern[str]

    @classmethod
    def from_name(cls, name_pattern: str, name: str | None = None) -> KnownApp:
        return cls(
            name=name or name_pattern,
            pattern=_rx(rf"^({name_pattern})\s+(.+)$"),
        )


_APPLE_SENDERS = (
    r"@apple\.com",
    r"@itunes\.com",
    r"@email\.apple\.com",
    r"no_reply@.*apple",
)


def _service(
    pattern: str,
    name: str,
    category: Category,
    *,
    senders: tuple[str, ...] = (),
    subjects: tuple[str, ...] = (),
    color: str | None = None,
) -> ServicePattern:
    return ServicePattern(
        pattern=_rx(pattern),
        name=name,
        category=category,
        sender_patterns=tuple(_rx(s) for s in senders),
        subject_patterns=tuple(_rx(s) for s in subjects),
        color=color,
    )


DEFAULT_SERVICES: tuple[ServicePattern, ...] = (
    # Streaming
    _service(
        r"netflix",
        "Netflix",
        Category.STREAMING,
        senders=(r"@netflix\.com", r"netflix"),
        subjects=(r"netflix",),
        color="#E50914",
    ),
    _service(
        r"disney\+|disneyplus",
        "Disney+",
        Category.STREAMING,
        senders=(r"@disney", r"@disneyplus"),
        subjects=(r"disney\+|disneyplus",),
        color="#113CCF",
    ),
    _service(
        r"hulu",
        "Hulu",
        Category.STREAMING,
        senders=(r"@hulu\.(com|jp)", r"@hulumail\.jp"),
        subjects=(r"hulu",),
    ),
    _service(
        r"amazon\s*prime\s*video|prime\s*video",
        "Amazon Prime Video",
        Category.STREAMING,
        color="#00A8E1",
    ),
    _service(
        r"u-next|unext",
        "U-NEXT",
        Category.STREAMING,
        senders=(r"@unext-info\.jp",),
        subjects=(r"u-next|unext",),
    ),
    _service(r"abema", "ABEMA", Category.STREAMING),
    _service(r"dazn", "DAZN", Category.STREAMING),
    _service(r"crunchyroll", "Crunchyroll", Category.STREAMING),
    _service(r"hbo\s*max", "HBO Max", Category.STREAMING),
    _service(r"paramount\+|paramountplus", "Paramount+", Category.STREAMING),
    _service(
        r"youtube\s*premium",
        "YouTube Premium",
        Category.STREAMING,
        senders=(r"@youtube\.com", r"@google\.com"),
        subjects=(r"youtube\s*premium",),
    ),
    _service(
        r"apple\s*tv\+?",
        "Apple TV+",
        Category.STREAMING,
        senders=_APPLE_SENDERS,
        subjects=(r"apple\s*tv\+|apple\s*tv\s*plus",),
    ),
    # Music
    _service(
        r"spotify",
        "Spotify",
        Category.MUSIC,
        senders=(r"@spotify\.com", r"spotify"),
        subjects=(r"spotify",),
        color="#1DB954",
    ),
    _service(
        r"apple\s*music",
        "Apple Music",
        Category.MUSIC,
        senders=_APPLE_SENDERS,
        subjects=(r"apple\s*music",),
    ),
    _service(r"youtube\s*music", "YouTube Music", Category.MUSIC),
    _service(r"amazon\s*music", "Amazon Music", Category.MUSIC),
    _service(r"line\s*music", "LINE MUSIC", Category.MUSIC),
    _service(r"\bawa\s", "AWA", Category.MUSIC),
    _service(r"tidal", "TIDAL", Category.MUSIC),
    _service(r"deezer", "Deezer", Category.MUSIC),
    # Productivity
    _service(
        r"notion",
        "Notion",
        Category.PRODUCTIVITY,
        senders=(r"@notion\.so", r"@makenotion\.com", r"@mail\.notion\.so"),
        subjects=(r"notion",),
    ),
    _service(
        r"slack",
        "Slack",
        Category.PRODUCTIVITY,
        senders=(r"@slack\.com",),
        subjects=(r"slack",),
    ),
    _service(
        r"zoom",
        "Zoom",
        Category.PRODUCTIVITY,
        senders=(r"@zoom\.(us|com)",),
        subjects=(r"zoom\s*(pro|business|enterprise|領収|invoice|receipt|請求)",),
    ),
    _service(
        r"microsoft\s*365|office\s*365",
        "Microsoft 365",
        Category.PRODUCTIVITY,
        senders=(r"@microsoft\.com", r"@office\.com"),
        subjects=(r"microsoft\s*365|office\s*365",),
    ),
    _service(r"evernote", "Evernote", Category.PRODUCTIVITY),
    _service(r"todoist", "Todoist", Category.PRODUCTIVITY),
    _service(r"1password|one\s*password", "1Password", Category.PRODUCTIVITY),
    _service(r"lastpass", "LastPass", Category.PRODUCTIVITY),
    _service(r"grammarly", "Grammarly", Category.PRODUCTIVITY),
    _service(r"canva", "Canva", Category.PRODUCTIVITY),
    # Cloud
    _service(
        r"dropbox",
        "Dropbox",
        Category.CLOUD,
        senders=(r"@dropbox\.com",),
        subjects=(r"dropbox",),
    ),
    _service(r"google\s*(one|drive|storage)", "Google One", Category.CLOUD),
    _service(
        r"icloud\+?(?:\s*ストレージ)?",
        "iCloud+",
        Category.CLOUD,
        senders=_APPLE_SENDERS,
        subjects=(
            r"icloud\+|icloud\s*ストレージ|icloud\s*storage",
            r"icloud.*(?:領収|receipt|invoice|請求|支払|renewed)",
        ),
    ),
    _service(r"onedrive", "OneDrive", Category.CLOUD),
    _service(r"box\.com|box\s*storage", "Box", Category.CLOUD),
    # Gaming
    _service(
        r"playstation\s*(plus|now)|ps\s*plus",
        "PlayStation Plus",
        Category.GAMING,
        senders=(r"@playstation\.com", r"@sony\.com", r"sonyentertainmentnetwork"),
        subjects=(r"playstation\s*plus|ps\s*plus",),
    ),
    _service(
        r"xbox\s*game\s*pass",
        "Xbox Game Pass",
        Category.GAMING,
        senders=(r"@xbox\.com", r"@microsoft\.com"),
        subjects=(r"xbox\s*game\s*pass",),
    ),
    _service(
        r"nintendo\s*(switch\s*)?online|ニンテンドースイッチオンライン",
        "Nintendo Switch Online",
        Category.GAMING,
        senders=(r"nintendo\.(com|co\.jp)",),
        subjects=(r"nintendo\s*switch\s*online|ニンテンドースイッチオンライン",),
    ),
    _service(r"ea\s*play", "EA Play", Category.GAMING),
    _service(
        r"apple\s*arcade",
        "Apple Arcade",
        Category.GAMING,
        senders=_APPLE_SENDERS,
        subjects=(r"apple\s*arcade",),
    ),
    _service(r"geforce\s*now", "GeForce NOW", Category.GAMING),
    # News
    _service(r"nikkei|日経", "日経電子版", Category.NEWS),
    _service(r"new\s*york\s*times|nytimes", "New York Times", Category.NEWS),
    _service(r"washington\s*post", "Washington Post", Category.NEWS),
    _service(r"wall\s*street\s*journal|wsj", "Wall Street Journal", Category.NEWS),
    _service(r"medium", "Medium", Category.NEWS),
    # Fitness
    _service(
        r"apple\s*fitness\+?",
        "Apple Fitness+",
        Category.FITNESS,
        senders=_APPLE_SENDERS,
        subjects=(r"apple\s*fitness\+|apple\s*fitness\s*plus",),
    ),
    _service(r"strava", "Strava", Category.FITNESS),
    _service(r"peloton", "Peloton", Category.FITNESS),
    _service(r"nike\s*(training|run)", "Nike Training", Category.FITNESS),
    # Education
    _service(r"coursera", "Coursera", Category.EDUCATION),
    _service(r"udemy", "Udemy", Category.EDUCATION),
    _service(r"skillshare", "Skillshare", Category.EDUCATION),
    _service(r"duolingo", "Duolingo", Category.EDUCATION),
    _service(r"linkedin\s*learning", "LinkedIn Learning", Category.EDUCATION),
    _service(r"masterclass", "MasterClass", Category.EDUCATION),
    # Design, development and AI tools
    _service(
        r"adobe|creative\s*cloud",
        "Adobe Creative Cloud",
        Category.OTHER,
        senders=(r"@adobe\.com", r"@adobesystems\.com", r"@mail\.adobe\.com"),
        subjects=(r"adobe|creative\s*cloud",),
    ),
    _service(r"figma", "Figma", Category.OTHER),
    _service(r"sketch", "Sketch", Category.OTHER),
    _service(
        r"github",
        "GitHub",
        Category.OTHER,
        senders=(r"@github\.com",),
        subjects=(r"github\s*(pro|team|enterprise|receipt|invoice|領収|請求)",),
    ),
    _service(r"gitlab", "GitLab", Category.OTHER),
    _service(
        r"chatgpt|openai",
        "ChatGPT Plus",
        Category.OTHER,
        senders=(r"@openai\.com", r"@tm\.openai\.com"),
        subjects=(r"chatgpt|openai",),
    ),
    _service(
        r"claude|anthropic",
        "Claude Pro",
        Category.OTHER,
        senders=(r"@anthropic\.com",),
        subjects=(r"claude|anthropic",),
    ),
    # Must stay after "Amazon Prime Video"
    _service(
        r"amazon\s*prime(?!\s*video)|プライム会員",
        "Amazon Prime",
        Category.OTHER,
        senders=(r"@amazon\.(com|co\.jp)",),
        subjects=(r"amazon\s*prime|プライム会員",),
    ),
    _service(
        r"apple\s*one",
        "Apple One",
        Category.OTHER,
        senders=_APPLE_SENDERS,
        subjects=(r"apple\s*one",),
    ),
    _service(
        r"apple\s*news\+?",
        "Apple News+",
        Category.OTHER,
        senders=_APPLE_SENDERS,
        subjects=(r"apple\s*news\+|apple\s*news\s*plus",),
    ),
    # App stores
    _service(r"app\s*store|itunes", "App Store", Category.OTHER),
    _service(r"google\s*play", "Google Play", Category.OTHER),
    # Shopping
    _service(r"amazon(?!\s*(prime|music|video))", "Amazon", Category.OTHER),
    _service(r"楽天市場|rakuten", "楽天", Category.OTHER),
    _service(r"yahoo.*ショッピング|paypay.*モール", "Yahoo!ショッピング", Category.OTHER),
    _service(r"mercari|メルカリ", "メルカリ", Category.OTHER),
)

_JPY_NUMBER = r"(\d[\d,]*)"
_DECIMAL_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"
_TOTAL_LABEL = r"(?:合計|total|amount|金額|請求額|お支払い金額|料金)"

DEFAULT_PRICE_PATTERNS: tuple[PricePattern, ...] = (
    # JPY, labelled totals first
    PricePattern(_rx(rf"{_TOTAL_LABEL}[：:\s]*[¥￥]\s*{_JPY_NUMBER}"), "JPY"),
    PricePattern(_rx(rf"{_TOTAL_LABEL}[：:\s]*{_JPY_NUMBER}\s*円"), "JPY"),
    PricePattern(_rx(rf"[¥￥]\s*{_JPY_NUMBER}"), "JPY"),
    PricePattern(_rx(rf"{_JPY_NUMBER}\s*円"), "JPY"),
    PricePattern(_rx(rf"JPY\s*{_JPY_NUMBER}"), "JPY"),
    PricePattern(_rx(rf"{_JPY_NUMBER}\s*JPY"), "JPY"),
    # USD
    PricePattern(
        _rx(rf"(?:total|amount)[：:\s]*(?:US)?\$\s*{_DECIMAL_NUMBER}"), "USD"
    ),
    PricePattern(_rx(rf"US\$\s*{_DECIMAL_NUMBER}"), "USD"),
    PricePattern(_rx(rf"\$\s*{_DECIMAL_NUMBER}"), "USD"),
    PricePattern(_rx(rf"USD\s*{_DECIMAL_NUMBER}"), "USD"),
    PricePattern(_rx(rf"{_DECIMAL_NUMBER}\s*USD"), "USD"),
    # EUR
    PricePattern(_rx(rf"€\s*{_DECIMAL_NUMBER}"), "EUR"),
    PricePattern(_rx(rf"EUR\s*{_DECIMAL_NUMBER}"), "EUR"),
    PricePattern(_rx(rf"{_DECIMAL_NUMBER}\s*EUR"), "EUR"),
)

DEFAULT_CYCLE_PATTERNS: tuple[CyclePattern, ...] = (
    CyclePattern(
        _rx(r"月額|monthly|per\s*month|/\s*month|毎月|月払い"),
        BillingCycle.MONTHLY,
    ),
    CyclePattern(
        _rx(r"年額|yearly|annual|per\s*year|/\s*year|毎年|年払い"),
        BillingCycle.YEARLY,
    ),
    CyclePattern(
        _rx(r"週額|weekly|per\s*week|/\s*week|毎週"),
        BillingCycle.WEEKLY,
    ),
    CyclePattern(
        _rx(r"四半期|quarterly|3\s*months?|3\s*か月"),
        BillingCycle.QUARTERLY,
    ),
)

DEFAULT_KNOWN_APPS: tuple[KnownApp, ...] = (
    KnownApp.from_name(
        r"ARK:\s*Ultimate\s+Mobile\s+Edition", "ARK: Ultimate Mobile Edition"
    ),
    KnownApp.from_name("ブロスタ"),
    KnownApp.from_name("クラッシュ・ロワイヤル"),
    KnownApp.from_name("クラッシュ・オブ・クラン"),
    KnownApp.from_name("Tinder"),
    KnownApp.from_name("YouTube"),
    KnownApp.from_name("LINE"),
)

# Subject keywords that add confidence to a catalog match.
RECEIPT_KEYWORDS = _rx(r"receipt|invoice|領収|請求|支払")

# Strict billing-email test, applied to subjects only.
BILLING_SUBJECT_KEYWORDS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p)
    for p in (
        r"receipt",
        r"invoice",
        r"payment\s*confirm",
        r"billing\s*statement",
        r"thank you for your (purchase|payment|order)",
        r"order confirmation",
        r"領収書",
        r"請求書",
        r"ご利用明細",
        r"お支払い完了",
        r"決済完了",
        r"ご注文確認",
        r"購入完了",
        r"引き落とし",
        r"課金完了",
    )
)

PROMO_SUBJECT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p)
    for p in (
        r"ご存じですか",
        r"キャンペーン",
        r"お得",
        r"無料",
        r"割引",
        r"おすすめ",
        r"新機能",
        r"アップグレード",
        r"特別",
        r"限定",
        r"did you know",
        r"special offer",
        r"upgrade",
        r"free trial",
        r"% off",
        r"save \$",
        r"discount",
    )
)

PAYMENT_KEYWORDS: tuple[str, ...] = (
    "領収",
    "請求",
    "支払",
    "決済",
    "課金",
    "購入",
    "注文",
    "精算",
    "引き落とし",
    "お買い上げ",
    "ご利用",
    "ご請求",
    "receipt",
    "invoice",
    "payment",
    "billing",
    "charge",
    "purchase",
    "order",
    "transaction",
    "subscription",
    "renewal",
)

SUBSCRIPTION_KEYWORDS: tuple[str, ...] = (
    "月額",
    "年額",
    "週額",
    "四半期",
    "定期",
    "サブスクリプション",
    "自動更新",
    "継続",
    "メンバーシップ",
    "subscription",
    "monthly plan",
    "yearly plan",
    "annual plan",
    "weekly plan",
    "recurring",
    "renewal",
    "membership",
)

# Wording that still marks a charge as recurring despite in-app markers.
EXPLICIT_SUBSCRIPTION_KEYWORDS: tuple[str, ...] = (
    "月額",
    "年額",
    "自動更新",
    "subscription",
    "monthly plan",
    "yearly plan",
)

IN_APP_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p)
    for p in (
        r"ジェム|\bgems?\b",
        r"コイン|\bcoins?\b",
        r"エメラルド|emerald",
        r"ダイヤ|diamond",
        r"クリスタル|crystal",
        r"ポイント購入",
        r"\d+個",
        r"アプリ内課金|app\s*内課金",
        r"in-app purchase",
        r"consumable",
    )
)

# Billing labels that reclaim a number from an exclusion mentioned before them.
PRICE_LABELS = _rx(rf"{_TOTAL_LABEL}|請求|charged")

# Labels that mark an adjacent number as something other than a price.
PRICE_CONTEXT_EXCLUSIONS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p)
    for p in (
        r"ポイント",
        r"\bpoints?\b",
        r"会員番号",
        r"会員id",
        r"member\s*(id|no|number)",
        r"注文番号",
        r"order\s*(id|no|number|#)",
        r"確認番号",
        r"confirmation\s*(no|number|#)",
        r"クーポン",
        r"coupon",
    )
)

# Units that turn a preceding number into something other than money.
PRICE_SUFFIX_EXCLUSIONS: tuple[re.Pattern[str], ...] = tuple(
    _rx(p) for p in (r"^\s*(?:ポイント|pt\b|points?\b)", r"^\s*分のポイント")
)

SENDER_NOISE_WORDS = _rx(
    r"\s*\b(noreply|no-reply|support|billing|info|notifications?)\b\s*"
)
DOMAIN_NOISE_LABELS = frozenset(
    {"mail", "noreply", "no-reply", "email", "newsletter", "support", "billing"}
)
UNKNOWN_PAYMENT_NAME = "不明な支払い"


@dataclass(frozen=True)
class Catalog:
    """The ordered pattern lists an engine instance works with."""

    services: tuple[ServicePattern, ...] = DEFAULT_SERVICES
    price_patterns: tuple[PricePattern, ...] = DEFAULT_PRICE_PATTERNS
    cycle_patterns: tuple[CyclePattern, ...] = DEFAULT_CYCLE_PATTERNS
    known_apps: tuple[KnownApp, ...] = DEFAULT_KNOWN_APPS


DEFAULT_CATALOG = Catalog()
