"""Routing rule engine – ordered, first-match rule table."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from llmrouter.models import (
    Classification,
    ComplexityAnalysis,
    RouteDestination,
    RoutingDecision,
    RoutingOptions,
)

logger = logging.getLogger(__name__)

FALLBACK_REASONING = "Fallback route due to routing error"


class RuleCondition(BaseModel):
    """Conjunction of predicates; an empty condition always matches.

    Length bounds are ``min_length <= len < max_length``. Complexity bounds are
    ``complexity_above < score``, ``score < complexity_below`` and
    ``score >= complexity_at_least``.
    """

    model_config = ConfigDict(extra="forbid")

    content_types: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    min_length: int | None = None
    max_length: int | None = None
    complexity_above: float | None = None
    complexity_below: float | None = None
    complexity_at_least: float | None = None

    @property
    def is_unconditional(self) -> bool:
        return not self.model_dump(exclude_defaults=True)

    def matches(
        self,
        length: int,
        complexity_score: float,
        classification: Classification,
    ) -> bool:
        if self.content_types and classification.content_type not in self.content_types:
            return False
        if self.categories and not set(self.categories) & set(classification.categories):
            return False
        if self.min_length is not None and length < self.min_length:
            return False
        if self.max_length is not None and length >= self.max_length:
            return False
        if self.complexity_above is not None and not complexity_score > self.complexity_above:
            return False
        if self.complexity_below is not None and not complexity_score < self.complexity_below:
            return False
        if (
            self.complexity_at_least is not None
            and not complexity_score >= self.complexity_at_least
        ):
            return False
        return True


class RoutingRule(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    when: RuleCondition = Field(default_factory=RuleCondition)
    route_to: RouteDestination
    model: str
    reasoning: str
    fallback_to_cloud: bool = False


DEFAULT_RULES: list[RoutingRule] = [
    RoutingRule(
        name="image_content",
        when=RuleCondition(content_types=["image"]),
        route_to="local",
        model="vision_analysis",
        reasoning="Image content routed to local vision model",
    ),
    RoutingRule(
        name="complex_trading",
        when=RuleCondition(categories=["trading_content"], complexity_above=0.7),
        route_to="cloud",
        model="cloud_advanced",
        reasoning="Complex trading analysis requires advanced cloud model",
    ),
    RoutingRule(
        name="short_simple",
        when=RuleCondition(max_length=500, complexity_below=0.3),
        route_to="local",
        model="classification",
        reasoning="Short, simple content processed locally for speed",
    ),
    RoutingRule(
        name="long_medium_complexity",
        when=RuleCondition(min_length=2000, complexity_below=0.8),
        route_to="local",
        model="complex_reasoning",
        reasoning="Long content processed with local advanced model",
        fallback_to_cloud=True,
    ),
    RoutingRule(
        name="high_complexity",
        when=RuleCondition(complexity_at_least=0.8),
        route_to="cloud",
        model="cloud_standard",
        reasoning="High complexity requires cloud processing",
    ),
    RoutingRule(
        name="default",
        route_to="local",
        model="general_processing",
        reasoning="Default routing to local general model",
    ),
]


class RuleEngine:
    def __init__(self, rules: list[RoutingRule], fallback_model: str = "general_processing") -> None:
        self._rules = list(rules)
        self._fallback_model = fallback_model

    @property
    def rules(self) -> list[RoutingRule]:
        return list(self._rules)

    def apply(
        self,
        content: str,
        complexity: ComplexityAnalysis,
        classification: Classification,
        options: RoutingOptions | None = None,
    ) -> RoutingDecision:
        """Return the decision of the first rule whose condition holds."""
        length = len(content)
        for rule in self._rules:
            if rule.when.matches(length, complexity.complexity_score, classification):
                logger.debug("Rule %s matched (length=%d)", rule.name, length)
                return RoutingDecision(
                    route_to=rule.route_to,
                    model=rule.model,
                    reasoning=rule.reasoning,
                    fallback_to_cloud=rule.fallback_to_cloud,
                )
        # Loaded tables always end in an unconditional rule; this covers hand-built ones.
        return self.fallback_route()

    def fallback_route(self) -> RoutingDecision:
        return RoutingDecision(
            route_to="local",
            model=self._fallback_model,
            reasoning=FALLBACK_REASONING,
        )
