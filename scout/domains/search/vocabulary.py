"""
Vocabulary - Known entities and tokenization shared by parsing and keyword retrieval.
"""

from __future__ import annotations

import re

__all__ = [
    "KNOWN_COMPANIES",
    "KNOWN_SKILLS",
    "KNOWN_LOCATIONS",
    "KNOWN_INTERESTS",
    "STOPWORDS",
    "tokenize",
    "phrase_pattern",
    "find_phrases",
]

KNOWN_COMPANIES = [
    "OpenAI",
    "Anthropic",
    "Mastra.ai",
    "Vercel",
    "Stripe",
    "Linear",
    "Supabase",
    "Cloudflare",
    "Framer",
    "Replicate",
    "Hugging Face",
    "Pinecone",
    "LangChain",
    "Google",
    "Meta",
    "Microsoft",
    "Amazon",
    "Apple",
    "Netflix",
    "Uber",
    "Airbnb",
    "GitHub",
    "GitLab",
    "Figma",
    "Notion",
    "Slack",
    "Discord",
    "Zoom",
]

KNOWN_SKILLS = [
    "JavaScript",
    "TypeScript",
    "Python",
    "Go",
    "Rust",
    "Java",
    "C++",
    "Swift",
    "React",
    "Next.js",
    "Vue",
    "Svelte",
    "Node.js",
    "Django",
    "FastAPI",
    "Express",
    "PostgreSQL",
    "MongoDB",
    "Redis",
    "AWS",
    "GCP",
    "Azure",
    "Docker",
    "Kubernetes",
    "AI",
    "ML",
    "LLM",
    "Machine Learning",
    "Deep Learning",
    "NLP",
    "Computer Vision",
    "TensorFlow",
    "PyTorch",
    "Transformers",
]

KNOWN_LOCATIONS = [
    "Berlin",
    "Germany",
    "San Francisco",
    "USA",
    "London",
    "UK",
    "Amsterdam",
    "Netherlands",
    "Toronto",
    "Canada",
    "Remote",
    "Austin",
    "Dublin",
    "Ireland",
    "Barcelona",
    "Spain",
    "Singapore",
    "Sydney",
    "Australia",
    "Tokyo",
    "Japan",
    "Paris",
    "France",
    "Stockholm",
    "Sweden",
    "New York",
    "Los Angeles",
    "Seattle",
    "Boston",
    "Chicago",
    "Miami",
    "Europe",
    "Asia",
    "North America",
]

KNOWN_INTERESTS = [
    "music",
    "photography",
    "climbing",
    "hiking",
    "cycling",
    "running",
    "swimming",
    "cooking",
    "coffee",
    "wine",
    "travel",
    "reading",
    "writing",
    "gaming",
    "chess",
    "art",
    "design",
    "dancing",
    "surfing",
    "skiing",
    "yoga",
    "meditation",
    "podcasts",
    "philosophy",
    "science",
    "history",
    "languages",
    "volunteering",
    "open source",
]

STOPWORDS = frozenset(
    """
    a an and are as at be but by for from has have i in into is it its looking
    me my of on or our people person someone that the their them they this to
    us was we who with want need find show any all some
    """.split()
)

# Keeps "c++", "next.js" and "node.js" intact
_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9+#.]*[a-z0-9+#]|[a-z0-9]")


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens without stopwords or 1-character tokens, in order, de-duplicated."""
    tokens = []
    for token in _TOKEN_RE.findall(text.lower()):
        if len(token) > 1 and token not in STOPWORDS and token not in tokens:
            tokens.append(token)
    return tokens


def phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Case-insensitive pattern matching ``phrase`` only at word boundaries."""
    return re.compile(rf"(?<![\w.+#]){re.escape(phrase.lower())}(?![\w+#]|\.\w)")


def find_phrases(text: str, vocabulary: list[str]) -> list[str]:
    """Return vocabulary entries present in ``text``, in vocabulary order."""
    lowered = text.lower()
    return [phrase for phrase in vocabulary if phrase_pattern(phrase).search(lowered)]
