"""
analyzer/graph.py

LangGraph workflow assembly for the six-stage analysis pipeline.
"""

from __future__ import annotations

from collections.abc import Callable

from langgraph.graph import END, START, StateGraph

from analyzer.context import PipelineContext
from analyzer.nodes.competitors import make_competitors_node
from analyzer.nodes.content_origin import make_content_origin_node
from analyzer.nodes.intent import make_intent_node
from analyzer.nodes.patterns import make_patterns_node
from analyzer.nodes.recommendations import make_recommendations_node
from analyzer.nodes.search_scrape import make_search_scrape_node
from analyzer.state import (
    COMPETITORS,
    CONTENT_ORIGIN,
    INTENT,
    PATTERNS,
    RECOMMENDATIONS,
    SEARCH_SCRAPE,
    PipelineState,
)


def _continue_unless_halted(next_node: str) -> Callable[[PipelineState], str]:
    def route(state: PipelineState) -> str:
        return END if state.get("halt") else next_node

    return route


def build_graph(ctx: PipelineContext):
    """
    Build and compile the analysis workflow bound to one run's collaborators.

    Every stage is followed by a router that ends the run as soon as a node
    records a halt (fatal precondition or expired deadline).
    """
    graph = StateGraph(PipelineState)

    graph.add_node(SEARCH_SCRAPE, make_search_scrape_node(ctx))
    graph.add_node(INTENT, make_intent_node(ctx))
    graph.add_node(COMPETITORS, make_competitors_node(ctx))
    graph.add_node(PATTERNS, make_patterns_node(ctx))
    graph.add_node(CONTENT_ORIGIN, make_content_origin_node(ctx))
    graph.add_node(RECOMMENDATIONS, make_recommendations_node(ctx))

    graph.add_edge(START, SEARCH_SCRAPE)
    for current, following in (
        (SEARCH_SCRAPE, INTENT),
        (INTENT, COMPETITORS),
        (COMPETITORS, PATTERNS),
        (PATTERNS, CONTENT_ORIGIN),
        (CONTENT_ORIGIN, RECOMMENDATIONS),
    ):
        graph.add_conditional_edges(
            current,
            _continue_unless_halted(following),
            {following: following, END: END},
        )
    graph.add_edge(RECOMMENDATIONS, END)

    return graph.compile()
