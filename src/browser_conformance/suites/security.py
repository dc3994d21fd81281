"""Security header and content conformance scenarios."""

from typing import List, Sequence

from browser_conformance.models.rule_models import (
    ContentExcludes,
    CookiesSecure,
    CustomPredicate,
    HeaderAbsent,
    HeaderContains,
    HeaderEquals,
    HeaderPresent,
    ProbeEquals,
    SecureRequests,
    UrlMatches,
)
from browser_conformance.models.scenario_models import Scenario

CSP_DIRECTIVES = (
    "default-src 'self'",
    "script-src 'self'",
    "style-src 'self'",
    "img-src 'self'",
    "connect-src 'self'",
    "frame-src 'none'",
)

HSTS_TOKENS = ("max-age=63072000", "includeSubDomains", "preload")

PERMISSIONS_POLICY_TOKENS = ("camera=()", "microphone=()", "geolocation=()", "payment=()")

DISCLOSED_SERVERS = ("Apache/", "Microsoft-IIS/")

SENSITIVE_CONTENT_PATTERNS = (r"password", r"secret", r"api[_-]?key")

INLINE_SCRIPT_PROBE = """() => {
  try {
    const script = document.createElement('script');
    script.innerHTML = 'window.__conformanceInlineScript = true;';
    document.head.appendChild(script);
    return !window.__conformanceInlineScript;
  } catch (error) {
    return true;
  }
}"""


def _server_not_disclosed(snapshot) -> bool:
    server = snapshot.header("server") or ""
    return not any(marker in server for marker in DISCLOSED_SERVERS)


def security_scenarios(
    path: str = "/", allowed_origins: Sequence[str] = ()
) -> List[Scenario]:
    """
    Build the security scenarios.

    Args:
        path: Page to check
        allowed_origins: Origins exempt from the insecure-request check

    Returns:
        Scenarios in a stable order
    """
    return [
        Scenario(
            id="security-csp",
            name="Content Security Policy",
            path=path,
            rules=[HeaderPresent(key="content-security-policy")]
            + [
                HeaderContains(key="content-security-policy", substring=directive)
                for directive in CSP_DIRECTIVES
            ],
            tags=["security", "headers"],
        ),
        Scenario(
            id="security-https",
            name="HTTPS enforcement",
            path=path,
            rules=[HeaderPresent(key="strict-transport-security")]
            + [
                HeaderContains(key="strict-transport-security", substring=token)
                for token in HSTS_TOKENS
            ]
            + [UrlMatches(pattern=r"^https:")],
            tags=["security", "headers"],
        ),
        Scenario(
            id="security-clickjacking",
            name="Clickjacking protection",
            path=path,
            rules=[HeaderEquals(key="x-frame-options", expected="DENY")],
            tags=["security", "headers"],
        ),
        Scenario(
            id="security-mime-sniffing",
            name="MIME type sniffing protection",
            path=path,
            rules=[HeaderEquals(key="x-content-type-options", expected="nosniff")],
            tags=["security", "headers"],
        ),
        Scenario(
            id="security-referrer-policy",
            name="Referrer policy",
            path=path,
            rules=[
                HeaderEquals(
                    key="referrer-policy", expected="strict-origin-when-cross-origin"
                )
            ],
            tags=["security", "headers"],
        ),
        Scenario(
            id="security-permissions-policy",
            name="Permissions policy",
            path=path,
            rules=[HeaderPresent(key="permissions-policy")]
            + [
                HeaderContains(key="permissions-policy", substring=token)
                for token in PERMISSIONS_POLICY_TOKENS
            ],
            tags=["security", "headers"],
        ),
        Scenario(
            id="security-inline-script",
            name="Inline script blocked by CSP",
            path=path,
            probes={"inline_script_blocked": INLINE_SCRIPT_PROBE},
            rules=[ProbeEquals(probe="inline_script_blocked", expected=True)],
            tags=["security", "xss"],
        ),
        Scenario(
            id="security-information-disclosure",
            name="Information disclosure",
            path=path,
            rules=[
                CustomPredicate(name="server_not_disclosed", fn=_server_not_disclosed),
                HeaderAbsent(key="x-powered-by"),
                HeaderAbsent(key="x-aspnet-version"),
                ContentExcludes(patterns=SENSITIVE_CONTENT_PATTERNS),
            ],
            tags=["security"],
        ),
        Scenario(
            id="security-cookies",
            name="Cookie security",
            path=path,
            rules=[CookiesSecure()],
            tags=["security", "cookies"],
        ),
        Scenario(
            id="security-resource-loading",
            name="Resource loading security",
            path=path,
            wait_until="networkidle",
            rules=[SecureRequests(allowed_origins=tuple(allowed_origins))],
            tags=["security", "network"],
        ),
    ]
