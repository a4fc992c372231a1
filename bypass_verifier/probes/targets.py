"""
Probe targets.

The DPI registry lists resources large enough (>= 256 KiB) that a full range
read is only possible when nothing in the path interferes. They are spread
across hosting providers because DPI rules are often per-provider.
"""

from typing import List, Optional, Sequence, Tuple

from ..models import DpiTarget, StandardTarget

DPI_TARGETS: Tuple[DpiTarget, ...] = (
    DpiTarget("US.CF-01", "Cloudflare", "https://cdn.cookielaw.org/scripttemplates/202501.2.0/otBannerSdk.js"),
    DpiTarget("US.CF-02", "Cloudflare", "https://genshin.jmp.blue/characters/all#"),
    DpiTarget("US.CF-03", "Cloudflare", "https://api.frankfurter.dev/v1/2000-01-01..2002-12-31"),
    DpiTarget("US.DO-01", "DigitalOcean", "https://genderize.io/", times=2),
    DpiTarget("DE.HE-01", "Hetzner", "https://j.dejure.org/jcg/doctrine/doctrine_banner.webp"),
    DpiTarget("FI.HE-01", "Hetzner", "https://tcp1620-01.dubybot.live/1MB.bin"),
    DpiTarget("FI.HE-02", "Hetzner", "https://tcp1620-02.dubybot.live/1MB.bin"),
    DpiTarget("FI.HE-03", "Hetzner", "https://tcp1620-05.dubybot.live/1MB.bin"),
    DpiTarget("FI.HE-04", "Hetzner", "https://tcp1620-06.dubybot.live/1MB.bin"),
    DpiTarget("FR.OVH-01", "OVH", "https://eu.api.ovh.com/console/rapidoc-min.js"),
    DpiTarget("FR.OVH-02", "OVH", "https://ovh.sfx.ovh/10M.bin"),
    DpiTarget("SE.OR-01", "Oracle", "https://oracle.sfx.ovh/10M.bin"),
    DpiTarget("DE.AWS-01", "AWS", "https://tms.delta.com/delta/dl_anderson/Bootstrap.js"),
    DpiTarget("US.AWS-01", "AWS", "https://corp.kaltura.com/wp-content/cache/min/1/wp-content/themes/airfleet/dist/styles/theme.css"),
    DpiTarget("US.GC-01", "Google Cloud", "https://api.usercentrics.eu/gvl/v3/en.json"),
    DpiTarget("US.FST-01", "Fastly", "https://openoffice.apache.org/images/blog/rejected.png"),
    DpiTarget("US.FST-02", "Fastly", "https://www.juniper.net/etc.clientlibs/juniper/clientlibs/clientlib-site/resources/fonts/lato/Lato-Regular.woff2"),
    DpiTarget("PL.AKM-01", "Akamai", "https://www.lg.com/lg5-common-gp/library/jquery.min.js"),
    DpiTarget("PL.AKM-02", "Akamai", "https://media-assets.stryker.com/is/image/stryker/gateway_1?$max_width_1410$"),
    DpiTarget("US.CDN77-01", "CDN77", "https://cdn.eso.org/images/banner1920/eso2520a.jpg"),
    DpiTarget("DE.CNTB-01", "Contabo", "https://cloudlets.io/wp-content/themes/Avada/includes/lib/assets/fonts/fontawesome/webfonts/fa-solid-900.woff2"),
    DpiTarget("FR.SW-01", "Scaleway", "https://renklisigorta.com.tr/teklif-al"),
    DpiTarget("US.CNST-01", "Constant", "https://cdn.xuansiwei.com/common/lib/font-awesome/4.7.0/fontawesome-webfont.woff2?v=4.7.0"),
)

CUSTOM_TARGET_ID = "CUSTOM"
CUSTOM_TARGET_PROVIDER = "Custom"


def custom_dpi_target(url: str) -> DpiTarget:
    return DpiTarget(CUSTOM_TARGET_ID, CUSTOM_TARGET_PROVIDER, url.strip())


def expand_dpi_targets(
    registry: Sequence[DpiTarget] = DPI_TARGETS,
    custom_url: Optional[str] = None,
) -> List[Tuple[str, DpiTarget]]:
    """
    One (target_name, target) pair per probe.

    An entry with times=N becomes N probes named "ID@0" .. "ID@N-1". A custom
    URL replaces the registry entirely.
    """
    if custom_url and custom_url.strip():
        registry = [custom_dpi_target(custom_url)]

    expanded: List[Tuple[str, DpiTarget]] = []
    for target in registry:
        times = max(1, target.times)
        if times == 1:
            expanded.append((target.id, target))
            continue
        for index in range(times):
            expanded.append((f"{target.id}@{index}", target))
    return expanded


def standard_targets(domain: str) -> List[StandardTarget]:
    """The standard suite probes exactly one user-supplied domain."""
    return [StandardTarget.from_domain(domain)]
