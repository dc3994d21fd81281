"""Assertion engine evaluating declarative rules against snapshots.

PATTERN: Kind-to-evaluator dispatch over immutable rule models
CRITICAL: Evaluation is pure and total; it never raises and never stops early
GOTCHA: Absent evidence (missing header, unmatched selector, unmeasured
metric) is a deterministic failure with observed=None
"""

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from browser_conformance.browser.observable_collector import merge_dom_queries
from browser_conformance.models.rule_models import (
    AssertionRule,
    ConsoleClean,
    ContentExcludes,
    CookiesSecure,
    CustomPredicate,
    DomAttributeContains,
    DomAttributeEquals,
    DomCount,
    DomTextContains,
    HeaderAbsent,
    HeaderContains,
    HeaderEquals,
    HeaderPresent,
    MetricBelow,
    NavigationErrorContains,
    ProbeEquals,
    SecureRequests,
    StatusEquals,
    TitleEquals,
    UrlMatches,
)
from browser_conformance.models.snapshot_models import (
    DomQuery,
    NetworkEventType,
    ObservableSnapshot,
)
from browser_conformance.models.verdict_models import (
    CellKey,
    RuleOutcome,
    Verdict,
    VerdictKind,
)

logger = logging.getLogger(__name__)

# (passed, observed, expected, message)
Evaluation = Tuple[bool, Any, Any, str]
Evaluator = Callable[[Any, ObservableSnapshot], Evaluation]

_MISSING = object()


def _header(rule: Any, snapshot: ObservableSnapshot) -> Optional[str]:
    return snapshot.header(rule.key)


def _eval_header_equals(rule: HeaderEquals, snapshot: ObservableSnapshot) -> Evaluation:
    observed = _header(rule, snapshot)
    if observed is None:
        return False, None, rule.expected, f"header '{rule.key}' not present"
    passed = observed == rule.expected
    return passed, observed, rule.expected, (
        "" if passed else f"header '{rule.key}' is {observed!r}, expected {rule.expected!r}"
    )


def _eval_header_contains(
    rule: HeaderContains, snapshot: ObservableSnapshot
) -> Evaluation:
    observed = _header(rule, snapshot)
    if observed is None:
        return False, None, rule.substring, f"header '{rule.key}' not present"
    passed = rule.substring in observed
    return passed, observed, rule.substring, (
        "" if passed else f"header '{rule.key}' does not contain {rule.substring!r}"
    )


def _eval_header_present(rule: HeaderPresent, snapshot: ObservableSnapshot) -> Evaluation:
    observed = _header(rule, snapshot)
    passed = bool(observed)
    return passed, observed, "present", (
        "" if passed else f"header '{rule.key}' missing or empty"
    )


def _eval_header_absent(rule: HeaderAbsent, snapshot: ObservableSnapshot) -> Evaluation:
    observed = _header(rule, snapshot)
    passed = observed is None
    return passed, observed, None, (
        "" if passed else f"header '{rule.key}' should not be sent"
    )


def _eval_status_equals(rule: StatusEquals, snapshot: ObservableSnapshot) -> Evaluation:
    observed = snapshot.status
    if observed is None:
        message = "no response recorded"
        if snapshot.navigation_error:
            message = f"no response recorded: {snapshot.navigation_error}"
        return False, None, rule.code, message
    passed = observed == rule.code
    return passed, observed, rule.code, (
        "" if passed else f"status {observed}, expected {rule.code}"
    )


def _eval_title_equals(rule: TitleEquals, snapshot: ObservableSnapshot) -> Evaluation:
    observed = snapshot.title
    passed = observed is not None and observed == rule.expected
    return passed, observed, rule.expected, (
        "" if passed else f"title is {observed!r}"
    )


def _eval_url_matches(rule: UrlMatches, snapshot: ObservableSnapshot) -> Evaluation:
    observed = snapshot.url or None
    if observed is None:
        return False, None, rule.pattern, "page URL not recorded"
    try:
        passed = re.search(rule.pattern, observed) is not None
    except re.error as e:
        return False, observed, rule.pattern, f"invalid pattern: {e}"
    return passed, observed, rule.pattern, (
        "" if passed else f"URL {observed!r} does not match"
    )


def _dom_result(selector: str, snapshot: ObservableSnapshot):
    result = snapshot.dom.get(selector)
    if result is None:
        return None, f"selector {selector!r} was not queried"
    if result.error:
        return None, f"selector {selector!r} query failed: {result.error}"
    return result, ""


def _eval_dom_text_contains(
    rule: DomTextContains, snapshot: ObservableSnapshot
) -> Evaluation:
    result, problem = _dom_result(rule.selector, snapshot)
    if result is None:
        return False, None, rule.substring, problem
    if result.count == 0:
        return False, None, rule.substring, f"no element matches {rule.selector!r}"
    observed = list(result.texts)
    passed = any(rule.substring in text for text in result.texts)
    return passed, observed, rule.substring, (
        "" if passed else f"no {rule.selector!r} text contains {rule.substring!r}"
    )


def _first_attribute(rule: Any, snapshot: ObservableSnapshot) -> Tuple[Any, str]:
    result, problem = _dom_result(rule.selector, snapshot)
    if result is None:
        return None, problem
    value = result.first_attribute(rule.attribute)
    if value is None:
        return None, f"attribute '{rule.attribute}' absent on {rule.selector!r}"
    return value, ""


def _eval_dom_attribute_equals(
    rule: DomAttributeEquals, snapshot: ObservableSnapshot
) -> Evaluation:
    observed, problem = _first_attribute(rule, snapshot)
    if observed is None:
        return False, None, rule.expected, problem
    passed = observed == rule.expected
    return passed, observed, rule.expected, (
        "" if passed else f"{rule.selector}[{rule.attribute}] is {observed!r}"
    )


def _eval_dom_attribute_contains(
    rule: DomAttributeContains, snapshot: ObservableSnapshot
) -> Evaluation:
    observed, problem = _first_attribute(rule, snapshot)
    if observed is None:
        return False, None, rule.substring, problem
    passed = rule.substring in observed
    return passed, observed, rule.substring, (
        "" if passed else f"{rule.selector}[{rule.attribute}] lacks {rule.substring!r}"
    )


def _eval_dom_count(rule: DomCount, snapshot: ObservableSnapshot) -> Evaluation:
    expected = {"minimum": rule.minimum, "maximum": rule.maximum}
    result, problem = _dom_result(rule.selector, snapshot)
    if result is None:
        return False, None, expected, problem
    observed = result.count
    passed = observed >= rule.minimum and (
        rule.maximum is None or observed <= rule.maximum
    )
    return passed, observed, expected, (
        "" if passed else f"{observed} elements match {rule.selector!r}"
    )


def _eval_metric_below(rule: MetricBelow, snapshot: ObservableSnapshot) -> Evaluation:
    observed = snapshot.timing.get(rule.metric)
    if observed is None:
        return False, None, rule.threshold_ms, f"metric '{rule.metric}' not measured"
    passed = observed < rule.threshold_ms
    return passed, observed, rule.threshold_ms, (
        "" if passed else f"{rule.metric} {observed:.1f}ms >= {rule.threshold_ms}ms"
    )


def _eval_console_clean(rule: ConsoleClean, snapshot: ObservableSnapshot) -> Evaluation:
    offending = [
        entry.text
        for entry in snapshot.console
        if entry.level in rule.levels
        and not any(ignored in entry.text for ignored in rule.ignore)
    ]
    passed = not offending
    return passed, offending, [], (
        "" if passed else f"{len(offending)} console message(s) at {list(rule.levels)}"
    )


def _eval_content_excludes(
    rule: ContentExcludes, snapshot: ObservableSnapshot
) -> Evaluation:
    content = snapshot.content
    if content is None:
        return False, None, list(rule.patterns), "page content not captured"
    matched = []
    for pattern in rule.patterns:
        try:
            if re.search(pattern, content, re.IGNORECASE):
                matched.append(pattern)
        except re.error as e:
            return False, None, list(rule.patterns), f"invalid pattern {pattern!r}: {e}"
    passed = not matched
    return passed, matched, [], (
        "" if passed else f"content matches {matched}"
    )


def _eval_secure_requests(
    rule: SecureRequests, snapshot: ObservableSnapshot
) -> Evaluation:
    offending = []
    for entry in snapshot.network:
        if entry.event != NetworkEventType.REQUEST:
            continue
        url = entry.url
        if any(url.startswith(origin) for origin in rule.allowed_origins):
            continue
        if url.startswith("http://") or url.lower().startswith("javascript:"):
            offending.append(url)
    passed = not offending
    return passed, offending, [], (
        "" if passed else f"{len(offending)} insecure request(s)"
    )


def _eval_cookies_secure(rule: CookiesSecure, snapshot: ObservableSnapshot) -> Evaluation:
    on_https = snapshot.url.startswith("https://")
    violations = []
    for cookie in snapshot.cookies:
        if on_https and not cookie.secure:
            violations.append(f"{cookie.name}: not Secure")
        lowered = cookie.name.lower()
        if any(marker in lowered for marker in rule.sensitive_markers) and not (
            cookie.http_only
        ):
            violations.append(f"{cookie.name}: not HttpOnly")
    passed = not violations
    return passed, violations, [], (
        "" if passed else "; ".join(violations)
    )


def _eval_probe_equals(rule: ProbeEquals, snapshot: ObservableSnapshot) -> Evaluation:
    name, _, path = rule.probe.partition(".")
    if name not in snapshot.probes:
        error = snapshot.probe_errors.get(name)
        message = f"probe '{name}' failed: {error}" if error else f"probe '{name}' not run"
        return False, None, rule.expected, message
    value: Any = snapshot.probes[name]
    for key in path.split(".") if path else []:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            value = _MISSING
            break
    if value is _MISSING:
        return False, None, rule.expected, f"probe path '{rule.probe}' not found"
    passed = value == rule.expected
    return passed, value, rule.expected, (
        "" if passed else f"probe '{rule.probe}' is {value!r}"
    )


def _eval_navigation_error_contains(
    rule: NavigationErrorContains, snapshot: ObservableSnapshot
) -> Evaluation:
    observed = snapshot.navigation_error
    if observed is None:
        return False, None, rule.substring, "navigation did not fail"
    passed = rule.substring in observed
    return passed, observed, rule.substring, (
        "" if passed else f"navigation error lacks {rule.substring!r}"
    )


def _eval_custom_predicate(
    rule: CustomPredicate, snapshot: ObservableSnapshot
) -> Evaluation:
    # Predicates see a private copy of the snapshot
    try:
        result = rule.fn(snapshot.model_copy(deep=True))
    except Exception as e:
        return False, f"{type(e).__name__}: {e}", True, f"predicate '{rule.name}' raised"
    passed = bool(result)
    return passed, result, True, (
        "" if passed else f"predicate '{rule.name}' returned {result!r}"
    )


DEFAULT_EVALUATORS: Dict[str, Evaluator] = {
    "header_equals": _eval_header_equals,
    "header_contains": _eval_header_contains,
    "header_present": _eval_header_present,
    "header_absent": _eval_header_absent,
    "status_equals": _eval_status_equals,
    "title_equals": _eval_title_equals,
    "url_matches": _eval_url_matches,
    "dom_text_contains": _eval_dom_text_contains,
    "dom_attribute_equals": _eval_dom_attribute_equals,
    "dom_attribute_contains": _eval_dom_attribute_contains,
    "dom_count": _eval_dom_count,
    "metric_below": _eval_metric_below,
    "console_clean": _eval_console_clean,
    "content_excludes": _eval_content_excludes,
    "secure_requests": _eval_secure_requests,
    "cookies_secure": _eval_cookies_secure,
    "probe_equals": _eval_probe_equals,
    "navigation_error_contains": _eval_navigation_error_contains,
    "custom_predicate": _eval_custom_predicate,
}


def rule_id(rule: AssertionRule, index: int) -> str:
    """Stable identifier for a rule within its scenario."""
    return rule.id or f"{index}:{getattr(rule, 'kind', type(rule).__name__)}"


def required_dom_queries(rules: Iterable[AssertionRule]) -> List[DomQuery]:
    """DOM queries the collector must run for these rules."""
    return merge_dom_queries(query for rule in rules for query in rule.dom_queries())


class AssertionEngine:
    """
    Evaluates assertion rules against a frozen ObservableSnapshot.

    Every rule is evaluated, independently of the others, so a verdict
    always carries the outcome of each rule.
    """

    def __init__(self, evaluators: Optional[Dict[str, Evaluator]] = None):
        """
        Initialize the assertion engine.

        Args:
            evaluators: Kind-to-evaluator table (defaults to all built-in kinds)
        """
        self._evaluators = dict(evaluators or DEFAULT_EVALUATORS)

    def evaluate_rule(
        self, rule: AssertionRule, snapshot: ObservableSnapshot, index: int = 0
    ) -> RuleOutcome:
        """
        Evaluate one rule. Never raises.

        Args:
            rule: Rule to evaluate
            snapshot: Evidence
            index: Position of the rule in its scenario (for default ids)

        Returns:
            Rule outcome with observed and expected values
        """
        kind = getattr(rule, "kind", type(rule).__name__)
        evaluator = self._evaluators.get(kind)
        if evaluator is None:
            return RuleOutcome(
                rule_id=rule_id(rule, index),
                kind=kind,
                passed=False,
                message=f"no evaluator for rule kind '{kind}'",
            )

        try:
            passed, observed, expected, message = evaluator(rule, snapshot)
        except Exception as e:
            logger.error(f"Evaluator for '{kind}' raised: {e}")
            passed, observed, expected = False, None, None
            message = f"evaluation error: {type(e).__name__}: {e}"

        return RuleOutcome(
            rule_id=rule_id(rule, index),
            kind=kind,
            passed=passed,
            observed=observed,
            expected=expected,
            message=message,
        )

    def evaluate(
        self,
        snapshot: ObservableSnapshot,
        rules: Sequence[AssertionRule],
        scenario_id: str = "",
        cell: Optional[CellKey] = None,
    ) -> Verdict:
        """
        Evaluate all rules and build the verdict.

        The verdict passes iff every rule outcome passes. The result depends
        only on the arguments.

        Args:
            snapshot: Frozen evidence for the cell
            rules: Rules of the scenario
            scenario_id: Scenario identifier
            cell: Matrix cell the snapshot came from

        Returns:
            Verdict of kind PASS or FAIL
        """
        outcomes = tuple(
            self.evaluate_rule(rule, snapshot, index) for index, rule in enumerate(rules)
        )
        kind = (
            VerdictKind.PASS
            if all(outcome.passed for outcome in outcomes)
            else VerdictKind.FAIL
        )

        failed = sum(1 for outcome in outcomes if not outcome.passed)
        logger.debug(
            f"Evaluated {len(outcomes)} rules for {scenario_id or 'snapshot'}: "
            f"{failed} failed"
        )

        return Verdict(scenario_id=scenario_id, cell=cell, kind=kind, outcomes=outcomes)
