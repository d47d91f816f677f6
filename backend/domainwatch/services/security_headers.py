"""Security header probe - fetches response headers and scores their posture.

Scoring starts at 100 and subtracts a fixed penalty for every header that is
not fully secure: the larger penalty when the header is missing, the smaller
one when it is present but weak. Grades come from GRADE_LADDER.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional, Tuple

import httpx

from ..errors import ProbeConnectionError, ProbeTimeoutError
from ..models.base import utcnow
from ..models.security import HeaderSeverity, SecurityHeader, SecurityHeadersAnalysis

logger = logging.getLogger(__name__)

USER_AGENT = "domainwatch-security-scanner/1.0"

# Score cut points, highest first. Both grade_for_score and
# min_score_for_grade read this table.
GRADE_LADDER = (
    ("A+", 97),
    ("A", 93),
    ("B", 80),
    ("C", 65),
    ("D", 50),
    ("F", 0),
)

HSTS_MIN_MAX_AGE = 300
HSTS_RECOMMENDED_MAX_AGE = 31536000

SAFE_FRAME_OPTIONS = {"deny", "sameorigin"}
SAFE_XSS_PROTECTION = {"1", "1; mode=block"}
SAFE_REFERRER_POLICIES = {
    "no-referrer",
    "same-origin",
    "strict-origin",
    "strict-origin-when-cross-origin",
}
UNSAFE_SCRIPT_SOURCES = ("'unsafe-inline'", "'unsafe-eval'")


def grade_for_score(score: int) -> str:
    for grade, minimum in GRADE_LADDER:
        if score >= minimum:
            return grade
    return GRADE_LADDER[-1][0]


def min_score_for_grade(grade: str) -> int:
    return dict(GRADE_LADDER)[grade]


# Header checks return (secure, recommendation). A recommendation on a
# secure header is advisory only.
HeaderCheck = Callable[[str], Tuple[bool, Optional[str]]]


def _check_hsts(value: str) -> Tuple[bool, Optional[str]]:
    match = re.search(r"max-age\s*=\s*\"?(\d+)", value, re.IGNORECASE)
    if not match:
        return False, "Add a max-age directive to Strict-Transport-Security"
    max_age = int(match.group(1))
    if max_age < HSTS_MIN_MAX_AGE:
        return False, f"Increase HSTS max-age to at least {HSTS_RECOMMENDED_MAX_AGE} (one year)"
    if max_age < HSTS_RECOMMENDED_MAX_AGE:
        return True, f"Consider raising HSTS max-age to {HSTS_RECOMMENDED_MAX_AGE} (one year)"
    return True, None


def parse_csp(value: str) -> Dict[str, list]:
    """Split a policy into {directive: [sources]}; the first occurrence of a directive wins."""
    directives: Dict[str, list] = {}
    for part in value.split(";"):
        tokens = part.strip().split()
        if not tokens:
            continue
        directives.setdefault(tokens[0].lower(), [t.lower() for t in tokens[1:]])
    return directives


def _check_csp(value: str) -> Tuple[bool, Optional[str]]:
    directives = parse_csp(value)
    sources = directives.get("script-src", directives.get("default-src"))
    if sources is None:
        return False, "Add a script-src or default-src directive to Content-Security-Policy"
    unsafe = [s for s in UNSAFE_SCRIPT_SOURCES if s in sources]
    if unsafe:
        return False, f"Remove {' and '.join(unsafe)} from the CSP script sources"
    return True, None


def _check_frame_options(value: str) -> Tuple[bool, Optional[str]]:
    if value.strip().lower() in SAFE_FRAME_OPTIONS:
        return True, None
    return False, "Set X-Frame-Options to DENY or SAMEORIGIN"


def _check_content_type_options(value: str) -> Tuple[bool, Optional[str]]:
    if value.strip().lower() == "nosniff":
        return True, None
    return False, "Set X-Content-Type-Options to nosniff"


def _check_xss_protection(value: str) -> Tuple[bool, Optional[str]]:
    normalized = re.sub(r"\s*;\s*", "; ", value.strip().lower())
    if normalized in SAFE_XSS_PROTECTION:
        return True, None
    return False, "Set X-XSS-Protection to 1; mode=block"


def _check_referrer_policy(value: str) -> Tuple[bool, Optional[str]]:
    # With a list of policies the last supported one applies
    policies = [p.strip().lower() for p in value.split(",") if p.strip()]
    if policies and policies[-1] in SAFE_REFERRER_POLICIES:
        return True, None
    return False, "Use a stricter Referrer-Policy such as strict-origin-when-cross-origin"


def _check_permissions_policy(value: str) -> Tuple[bool, Optional[str]]:
    return True, None


@dataclass(frozen=True)
class HeaderPolicy:
    name: str
    title: str
    absent_penalty: int
    weak_penalty: int
    absent_severity: HeaderSeverity
    check: HeaderCheck
    missing_recommendation: str
    vulnerability: str


HEADER_POLICIES = (
    HeaderPolicy(
        "strict-transport-security", "Strict-Transport-Security", 20, 10, HeaderSeverity.ERROR,
        _check_hsts,
        "Add Strict-Transport-Security to enforce HTTPS connections",
        "Missing HSTS header - vulnerable to protocol downgrade attacks",
    ),
    HeaderPolicy(
        "content-security-policy", "Content-Security-Policy", 25, 12, HeaderSeverity.ERROR,
        _check_csp,
        "Add a Content-Security-Policy to restrict script sources",
        "Missing CSP header - vulnerable to XSS attacks",
    ),
    HeaderPolicy(
        "x-frame-options", "X-Frame-Options", 15, 7, HeaderSeverity.WARNING,
        _check_frame_options,
        "Add X-Frame-Options to prevent clickjacking",
        "Missing X-Frame-Options header - vulnerable to clickjacking",
    ),
    HeaderPolicy(
        "x-content-type-options", "X-Content-Type-Options", 10, 5, HeaderSeverity.WARNING,
        _check_content_type_options,
        "Add X-Content-Type-Options: nosniff to prevent MIME sniffing",
        "Missing X-Content-Type-Options header - vulnerable to MIME sniffing",
    ),
    HeaderPolicy(
        "x-xss-protection", "X-XSS-Protection", 10, 5, HeaderSeverity.INFO,
        _check_xss_protection,
        "Add X-XSS-Protection: 1; mode=block for legacy browsers",
        "Missing X-XSS-Protection header",
    ),
    HeaderPolicy(
        "referrer-policy", "Referrer-Policy", 10, 5, HeaderSeverity.INFO,
        _check_referrer_policy,
        "Add a Referrer-Policy to control referrer leakage",
        "Missing Referrer-Policy header",
    ),
    HeaderPolicy(
        "permissions-policy", "Permissions-Policy", 10, 5, HeaderSeverity.INFO,
        _check_permissions_policy,
        "Add a Permissions-Policy to restrict browser features",
        "Missing Permissions-Policy header",
    ),
)


def score_headers(
    domain: str,
    headers: Mapping[str, str],
    now: Optional[datetime] = None,
) -> SecurityHeadersAnalysis:
    """Score a set of response headers. Header names are matched case-insensitively."""
    received = {name.lower(): value for name, value in headers.items()}
    score = 100
    results: Dict[str, SecurityHeader] = {}
    recommendations = []
    vulnerabilities = []

    for policy in HEADER_POLICIES:
        value = received.get(policy.name)
        if not value:
            score -= policy.absent_penalty
            header = SecurityHeader(
                name=policy.title,
                present=False,
                secure=False,
                severity=policy.absent_severity,
                recommendation=policy.missing_recommendation,
            )
            if policy.absent_severity == HeaderSeverity.ERROR:
                vulnerabilities.append(policy.vulnerability)
        else:
            secure, advice = policy.check(value)
            if not secure:
                score -= policy.weak_penalty
            header = SecurityHeader(
                name=policy.title,
                value=value,
                present=True,
                secure=secure,
                severity=HeaderSeverity.INFO if secure else HeaderSeverity.WARNING,
                recommendation=advice,
            )

        if not header.secure:
            recommendations.append(header.recommendation)
        results[policy.name] = header

    score = max(0, min(100, score))
    return SecurityHeadersAnalysis(
        domain=domain,
        timestamp=now or utcnow(),
        overall_score=score,
        grade=grade_for_score(score),
        headers=results,
        recommendations=recommendations,
        vulnerabilities=vulnerabilities,
    )


class SecurityHeaderProbe:
    """Fetches one HTTPS response per analysis and scores its headers."""

    def __init__(self, timeout: float = 10, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def analyze(self, domain: str) -> SecurityHeadersAnalysis:
        """Analyze the security headers served by ``domain``.

        Raises:
            ProbeTimeoutError: The request did not complete within the timeout
            ProbeConnectionError: Any other transport failure
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                verify=False,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                response = await client.get(f"https://{domain}")
        except httpx.TimeoutException:
            logger.warning(f"Security header fetch for {domain} timed out")
            raise ProbeTimeoutError(domain, f"Request timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            logger.warning(f"Security header fetch for {domain} failed: {e}")
            raise ProbeConnectionError(domain, f"Connection failed: {e}")

        analysis = score_headers(domain, response.headers)
        logger.debug(f"{domain} security score {analysis.overall_score} ({analysis.grade})")
        return analysis
