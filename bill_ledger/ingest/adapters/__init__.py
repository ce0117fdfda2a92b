"""Per-platform extractors: raw export → ordered raw records."""

from . import alipay, icost, jd, wechat

EXTRACTORS = {
    alipay.PLATFORM: alipay.extract,
    wechat.PLATFORM: wechat.extract,
    jd.PLATFORM: jd.extract,
    icost.PLATFORM: icost.extract,
}

__all__ = ["EXTRACTORS", "alipay", "icost", "jd", "wechat"]
