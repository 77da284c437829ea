"""Report types produced by the probes.

Every report carries its identifying field (domain, input or URL) and an
``error`` string. An empty error means the check ran to completion; it is
the only field that signals failure. Reports are built fresh per request
and not touched again once the probe returns.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


class Report:
    """Mixin giving report dataclasses a JSON projection.

    ``error`` is left out of the output when empty, matching the wire format.
    """

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == 'error' and not value:
                continue
            data[f.name] = to_jsonable(value)
        return data

    @property
    def ok(self) -> bool:
        return not getattr(self, 'error', '')


@dataclass
class CertificateReport(Report):
    """Leaf certificate presented on port 443."""
    domain: str
    valid: bool = False
    issuer: str = ""
    subject: str = ""
    not_before: Optional[datetime] = None
    not_after: Optional[datetime] = None
    days_until_expiry: int = 0
    serial_number: str = ""
    signature_algorithm: str = ""
    public_key_algorithm: str = ""
    key_size: int = 0  # 0 when the key type has no modulus
    error: str = ""


@dataclass
class TransportSupportReport(Report):
    """HTTP/3 support."""
    domain: str
    supported: bool = False
    protocol: str = ""
    status: int = 0
    details: str = ""
    error: str = ""


@dataclass
class NameResolutionReport(Report):
    """DNS records for a name. Any list may be empty."""
    domain: str
    ipv4: List[str] = field(default_factory=list)
    ipv6: List[str] = field(default_factory=list)
    cname: List[str] = field(default_factory=list)
    mx: List[str] = field(default_factory=list)
    txt: List[str] = field(default_factory=list)
    ns: List[str] = field(default_factory=list)
    error: str = ""


@dataclass
class GeoLocation:
    """Location fields reported for an address."""
    country: str = "Unknown"
    region: str = "Unknown"
    city: str = "Unknown"
    isp: str = "Unknown"
    organization: str = "Unknown"
    timezone: str = "Unknown"


@dataclass
class AddressReport(Report):
    """IP literal or resolved hostname."""
    input: str
    is_domain: bool = False
    resolved_ips: List[str] = field(default_factory=list)
    ip: str = ""
    country: str = ""
    region: str = ""
    city: str = ""
    isp: str = ""
    organization: str = ""
    timezone: str = ""
    error: str = ""

    def apply_location(self, location: GeoLocation) -> None:
        self.country = location.country
        self.region = location.region
        self.city = location.city
        self.isp = location.isp
        self.organization = location.organization
        self.timezone = location.timezone


@dataclass
class HSTSPolicy(Report):
    """Parsed Strict-Transport-Security header."""
    enabled: bool = False
    max_age: int = 0
    include_subdomains: bool = False
    preload: bool = False
    directive: str = ""
    details: str = ""


@dataclass
class HSTSReport(Report):
    """HSTS view of the web settings check."""
    domain: str
    hsts: HSTSPolicy = field(default_factory=HSTSPolicy)
    error: str = ""


@dataclass
class TransportSettingsReport(Report):
    """HTTP response metadata for a site's front page."""
    domain: str
    status_code: int = 0
    headers: Dict[str, str] = field(default_factory=dict)
    server: str = ""
    content_type: str = ""
    content_length: Optional[int] = None
    last_modified: str = ""
    etag: str = ""
    redirect_url: str = ""  # 3xx only
    hsts: HSTSPolicy = field(default_factory=HSTSPolicy)
    response_time_ms: int = 0
    error: str = ""


class DMARCPolicy(str, Enum):
    NONE = "none"
    QUARANTINE = "quarantine"
    REJECT = "reject"
    UNKNOWN = "unknown"


@dataclass
class SPFReport(Report):
    configured: bool = False
    record: str = ""
    valid: bool = False
    details: str = ""
    error: str = ""


@dataclass
class DKIMReport(Report):
    configured: bool = False
    selectors: List[str] = field(default_factory=list)
    valid: bool = False
    details: str = ""
    error: str = ""


@dataclass
class DMARCReport(Report):
    configured: bool = False
    record: str = ""
    policy: Optional[DMARCPolicy] = None
    valid: bool = False
    details: str = ""
    error: str = ""


@dataclass
class BIMIReport(Report):
    configured: bool = False
    record: str = ""
    logo_url: str = ""
    valid: bool = False
    details: str = ""
    error: str = ""


@dataclass
class EmailAuthReport(Report):
    """SPF, DKIM, DMARC and BIMI configuration of a mail domain."""
    domain: str
    spf: SPFReport = field(default_factory=SPFReport)
    dkim: DKIMReport = field(default_factory=DKIMReport)
    dmarc: DMARCReport = field(default_factory=DMARCReport)
    bimi: BIMIReport = field(default_factory=BIMIReport)
    error: str = ""


@dataclass
class BlocklistEntry(Report):
    server: str
    server_ip: str
    is_blocked: bool


@dataclass
class BlocklistReport(Report):
    """Per-resolver blocking verdicts, in resolver table order."""
    domain: str
    results: List[BlocklistEntry] = field(default_factory=list)
    error: str = ""


@dataclass
class RobotsReport(Report):
    domain: str
    exists: bool = False
    status: str = ""
    content: str = ""
    lines: List[str] = field(default_factory=list)
    user_agents: List[str] = field(default_factory=list)
    disallowed: List[str] = field(default_factory=list)  # "agent: path"
    allowed: List[str] = field(default_factory=list)
    sitemaps: List[str] = field(default_factory=list)
    crawl_delay: str = ""
    error: str = ""


@dataclass
class SitemapReport(Report):
    domain: str
    sitemap_url: str = ""
    exists: bool = False
    status: str = ""
    is_sitemap_index: bool = False
    url_count: int = 0
    sub_sitemaps: List[str] = field(default_factory=list)
    sample_urls: List[str] = field(default_factory=list)
    last_modified: List[str] = field(default_factory=list)
    error: str = ""


@dataclass
class OpenGraphReport(Report):
    """Open Graph / Twitter Card preview data of a page."""
    url: str
    domain: str = ""
    found: bool = False

    image_url: str = ""
    image_url_alt: str = ""
    image_secure: str = ""
    image_width: str = ""
    image_height: str = ""
    image_type: str = ""
    accessible: bool = False
    status: int = 0
    content_type: str = ""
    size: Optional[int] = None
    image_error: str = ""

    og_title: str = ""
    og_description: str = ""
    og_type: str = ""
    og_url: str = ""
    og_site_name: str = ""
    og_locale: str = ""

    twitter_card: str = ""
    twitter_site: str = ""
    twitter_creator: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""
    twitter_image_alt: str = ""

    meta_title: str = ""
    meta_description: str = ""

    all_meta_tags: Dict[str, str] = field(default_factory=dict)
    all_twitter_tags: Dict[str, str] = field(default_factory=dict)
    error: str = ""


@dataclass
class HTMLFetchReport(Report):
    """Raw HTML of a URL and the URL actually fetched."""
    url: str
    html: str = ""
    status: int = 0
    error: str = ""
