"""Prompt builder for the generative analysis stages.

Each stage has a primary prompt and a smaller, stricter retry prompt that
carries a reduced sample of context.
"""

import json
from typing import Any, Dict, List, Sequence, Tuple

from app.domain.pages import PageFeatureSet, SearchResult
from llm_analysis.schema import IntentAnalysis, PageAnalysis, PatternAnalysis

_JSON_RULES = "IMPORTANT: Return ONLY valid JSON with no trailing commas."
_JSON_CLOSING = "Return only valid JSON with no trailing commas, no additional text."
_STRICT_RULES = "CRITICAL: Return ONLY valid JSON. No trailing commas. No comments. Proper formatting."

_INTENT_FORMAT = """\
{
  "intent": "informational|transactional|navigational|commercial",
  "userGoal": "Description of what the user is trying to accomplish",
  "buyerStage": "awareness|consideration|decision",
  "confidence": 85,
  "reasoning": "Brief explanation of your classification"
}"""

_PAGE_FORMAT = """\
{
  "strengths": [
    {
      "description": "Clear description of what this element does well for SEO",
      "selector": "CSS selector(s) to find this element, comma-separated for multiple options",
      "selectorFallback": "Generic fallback selector if primary not found"
    }
  ],
  "contentType": "tutorial|guide|comparison|product-page|listicle|tool|other",
  "keyElements": ["List notable content elements like calculators, comparisons, etc."],
  "targetAudience": "Description of who this content is for",
  "contentDepth": "shallow|moderate|comprehensive",
  "notes": "Any other relevant observations"
}"""

_PATTERN_FORMAT = """\
{
  "commonPatterns": [
    {
      "pattern": "Description of the pattern",
      "frequency": "Number of pages (e.g., 4/5)",
      "importance": "high|medium|low",
      "examples": ["Brief examples from the pages"]
    }
  ],
  "contentLength": {
    "average": 0,
    "range": "X - Y words",
    "recommendation": "Recommended word count range"
  },
  "commonElements": ["List elements found in most pages (FAQ, tables, etc.)"],
  "contentStructure": "Description of how top pages structure their content",
  "mustHaveElements": ["Critical elements needed to compete"]
}"""

_ORIGIN_FORMAT = """\
{
  "aiLikelihood": 0,
  "assessment": "likely_human|mixed|likely_ai",
  "signals": ["Concrete textual signals that informed the assessment"],
  "confidence": 70,
  "reasoning": "Brief explanation"
}"""

_RECOMMENDATIONS_FORMAT = """\
{
  "criticalGaps": [
    "List of the most important missing elements compared to top rankers"
  ],
  "recommendations": [
    {
      "priority": "HIGH|MEDIUM|LOW",
      "category": "content|technical|structure|other",
      "title": "Brief title of the recommendation",
      "description": "Detailed, actionable recommendation",
      "reasoning": "Why this will help rankings",
      "effort": "low|medium|high"
    }
  ],
  "quickWins": [
    "List 2-3 easy improvements that can be done quickly"
  ],
  "contentStrategy": "Overall content strategy recommendation",
  "technicalSEO": [
    "Technical SEO improvements needed"
  ]
}"""

_SELECTOR_GUIDE = """\
For strengths, identify 3-5 key elements that help this page rank well. Provide CSS selectors \
that would capture that element visually.

Use common selector patterns:
- FAQ sections: "#faq, .faq, .faqs, [itemtype*='FAQPage'], .faq-section"
- Comparison tables: "table.comparison, .comparison-table, .vs-table"
- Hero sections: "#hero, .hero, .hero-section, .hero-banner"
- Pricing tables: "#pricing, .pricing, .pricing-table, .plans"
- Feature lists: ".features, .feature-list, #features, .feature-grid"

Do NOT suggest selectors for: pre, code, script, nav, footer, sidebar"""


def _join_or(values: Sequence[str], empty: str = "None") -> str:
    return ", ".join(values) if values else empty


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _truncate(values: Sequence[str], limit: int) -> str:
    text = ", ".join(values[:limit])
    return text + ("..." if len(values) > limit else "")


CompetitorSummary = Tuple[int, PageFeatureSet, PageAnalysis]


class StagePromptBuilder:
    """Builds deterministic prompts for every analysis stage."""

    # -- intent -----------------------------------------------------------

    def intent_prompt(self, keyword: str, results: Sequence[SearchResult]) -> str:
        """Build the primary search-intent prompt.

        Args:
            keyword: The analysed keyword.
            results: Top organic results, in rank order.

        Returns:
            The prompt string.
        """
        results_text = "\n\n".join(
            f"{index}. {result.title}\n   URL: {result.url}\n   Snippet: {result.snippet}"
            for index, result in enumerate(results, start=1)
        )
        return f"""Analyze the search intent for the keyword: "{keyword}"

Based on the top {len(results)} Google search results below, determine:
1. The primary search intent (informational, transactional, navigational, or commercial investigation)
2. The specific user goal or question being answered
3. The buyer journey stage (awareness, consideration, decision)
4. Confidence level (0-100%)

Top Results:
{results_text}

{_JSON_RULES}

Provide your analysis in the following JSON format:
{_INTENT_FORMAT}

{_JSON_CLOSING}"""

    def intent_retry_prompt(self, keyword: str, results: Sequence[SearchResult]) -> str:
        titles = "\n".join(f"- {result.title}" for result in results[:3])
        return f"""Classify the search intent for "{keyword}".

{_STRICT_RULES}

{_INTENT_FORMAT}

Top result titles:
{titles}"""

    # -- competitor page --------------------------------------------------

    def page_prompt(self, keyword: str, page: PageFeatureSet, position: int) -> str:
        """Build the primary competitor-page prompt.

        Args:
            keyword: The analysed keyword.
            page: Extracted features of the competitor page.
            position: Rank of the page in the search results.

        Returns:
            The prompt string.
        """
        return f"""Analyze this page that ranks #{position} for "{keyword}":

URL: {page.url}
Title: {page.title}
Meta Description: {page.meta_description}

Heading Structure:
H1: {_join_or(page.h1_tags)}
H2 Tags ({len(page.h2_tags)}): {_truncate(page.h2_tags, 10)}
H3 Tags ({len(page.h3_tags)}): {_truncate(page.h3_tags, 5)}

Content Stats:
- Word Count: {page.word_count}
- Images: {page.image_count}
- Has Video: {_yes_no(page.has_video)}
- Has FAQ: {_yes_no(page.has_faq)}
- Has Tables: {_yes_no(page.has_tables)}
- Has Lists: {_yes_no(page.has_lists)}
- Schema Types: {_join_or(page.schema_types)}
- Internal Links: {page.internal_links}
- External Links: {page.external_links}

Content Preview (first 1000 chars):
{page.content_text[:1000]}...

{_JSON_RULES}

Analyze this page and provide insights in JSON format:
{_PAGE_FORMAT}

{_SELECTOR_GUIDE}

{_JSON_CLOSING}"""

    def page_retry_prompt(self, keyword: str, page: PageFeatureSet, position: int) -> str:
        return f"""List what helps the page ranking #{position} for "{keyword}" rank well.

{_STRICT_RULES}

{{
  "strengths": [{{"description": "What the page does well"}}],
  "contentType": "tutorial|guide|comparison|product-page|listicle|tool|other",
  "keyElements": ["element"],
  "targetAudience": "Who the page is for",
  "contentDepth": "shallow|moderate|comprehensive",
  "notes": ""
}}

Title: {page.title}
H1: {_join_or(page.h1_tags)}
Word Count: {page.word_count}
Content Preview: {page.content_text[:300]}"""

    # -- patterns ---------------------------------------------------------

    def patterns_prompt(self, keyword: str, competitors: Sequence[CompetitorSummary]) -> str:
        summaries = "\n\n".join(
            f"#{position}: {page.title}\n"
            f"  Content Type: {analysis.content_type}\n"
            f"  Word Count: {page.word_count}\n"
            f"  Key Elements: {', '.join(analysis.key_elements)}\n"
            f"  Strengths: {', '.join(strength.description for strength in analysis.strengths)}"
            for position, page, analysis in competitors
        )
        return f"""Identify common patterns across these top {len(competitors)} ranking pages for "{keyword}":

{summaries}

Find patterns that appear in most of the pages. These patterns are likely important for ranking.

{_JSON_RULES}

Provide your analysis in JSON format:
{_PATTERN_FORMAT}

{_JSON_CLOSING}"""

    def patterns_retry_prompt(self, keyword: str, competitors: Sequence[CompetitorSummary]) -> str:
        lines = "\n".join(
            f"#{position}: {analysis.content_type}, {page.word_count} words"
            for position, page, analysis in competitors
        )
        return f"""Summarise what the top pages for "{keyword}" have in common.

{_STRICT_RULES}

{_PATTERN_FORMAT}

Pages:
{lines}"""

    # -- content origin ---------------------------------------------------

    def content_origin_prompt(self, keyword: str, page: PageFeatureSet) -> str:
        """Build the primary content-origin prompt for the target page."""
        return f"""Assess whether the main copy of this page targeting "{keyword}" reads as \
machine-generated or written by a person.

URL: {page.url}
Title: {page.title}
Word Count: {page.word_count}

Consider signals such as repetitive phrasing, generic filler, uniform sentence rhythm, \
absence of first-hand detail, hedged claims without sources, and listicle boilerplate. \
Weigh concrete specifics, original data and a distinct voice as human signals.

Content (first 3000 chars):
{page.content_text[:3000]}

{_JSON_RULES}

Provide your assessment in JSON format, where aiLikelihood is 0-100:
{_ORIGIN_FORMAT}

{_JSON_CLOSING}"""

    def content_origin_retry_prompt(self, keyword: str, page: PageFeatureSet) -> str:
        return f"""Rate 0-100 how likely this text about "{keyword}" is machine-generated.

{_STRICT_RULES}

{_ORIGIN_FORMAT}

Text:
{page.content_text[:800]}"""

    # -- recommendations --------------------------------------------------

    def recommendations_prompt(
        self,
        keyword: str,
        target: PageFeatureSet,
        patterns: PatternAnalysis,
        intent: IntentAnalysis,
    ) -> str:
        """Build the primary recommendations prompt.

        Args:
            keyword: The analysed keyword.
            target: Target page features (possibly a placeholder).
            patterns: Competitor pattern analysis.
            intent: Search intent analysis.

        Returns:
            The prompt string.
        """
        scraping_note = ""
        if target.is_placeholder or target.word_count == 0:
            scraping_note = (
                "\nNOTE: The target page could not be scraped (likely blocked by anti-bot "
                "protection).\nBase recommendations on competitor patterns and best practices "
                "for this search intent.\n"
            )
        return f"""Generate actionable SEO recommendations for a page targeting "{keyword}".

SEARCH INTENT:
{self._dump(intent.model_dump(by_alias=True))}

TARGET PAGE CURRENT STATE:
- URL: {target.url}
- Title: {target.title}
- Meta Description: {target.meta_description or 'Not available'}
- Word Count: {target.word_count}
- H1: {_join_or(target.h1_tags, 'Not available')}
- Has FAQ: {_yes_no(target.has_faq)}
- Has Video: {_yes_no(target.has_video)}
- Has Tables: {_yes_no(target.has_tables)}
- Schema Types: {_join_or(target.schema_types)}
{scraping_note}
COMPETITOR PATTERNS (from top ranking pages):
{self._dump(patterns.model_dump(by_alias=True))}

Based on this analysis, provide specific, actionable recommendations to help this page rank #1.

IMPORTANT: Return ONLY valid JSON with no trailing commas. Do not include any text before or after the JSON.

Return your recommendations in this exact JSON format:
{_RECOMMENDATIONS_FORMAT}

Prioritize recommendations that address the biggest gaps.

CRITICAL: Ensure your JSON is valid:
- No trailing commas in arrays or objects
- All strings must use double quotes
- No comments
- Proper escaping of special characters

Return only the JSON object, nothing else."""

    def recommendations_retry_prompt(
        self,
        keyword: str,
        target: PageFeatureSet,
        patterns: PatternAnalysis,
    ) -> str:
        missing: List[str] = []
        if not target.has_faq:
            missing.append("FAQ")
        if not target.has_video:
            missing.append("video")
        must_have = json.dumps(list(patterns.must_have_elements))[:500]
        return f"""Based on competitor analysis, provide 5 key SEO recommendations for "{keyword}".

{_STRICT_RULES}

{{
  "criticalGaps": ["gap1", "gap2", "gap3"],
  "recommendations": [
    {{
      "priority": "HIGH",
      "category": "content",
      "title": "Short title",
      "description": "Specific action to take",
      "reasoning": "Why this helps",
      "effort": "medium"
    }}
  ],
  "quickWins": ["win1", "win2"],
  "contentStrategy": "Brief strategy",
  "technicalSEO": ["item1", "item2"]
}}

Patterns found: {must_have}
Target gaps: Word count is {target.word_count}, missing: {' '.join(missing) or 'none'}"""

    @staticmethod
    def _dump(payload: Dict[str, Any]) -> str:
        return json.dumps(payload, indent=2)
