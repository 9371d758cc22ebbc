"""Prompts for file categorization and fact extraction."""

from __future__ import annotations

BASE_CATEGORIES: dict[str, str] = {
    "financial": "transactions, spending, income, subscriptions, banking",
    "social": "connections, posts, interactions, social platforms",
    "professional": "work history, skills, education, career",
    "entertainment": "media consumption, content preferences, games, music, videos",
}

SUGGESTED_CATEGORIES: dict[str, str] = {
    "health": "medical records, fitness data, health metrics",
    "travel": "location history, trips, travel preferences",
    "shopping": "purchase history, product preferences",
    "communication": "emails, messages, contacts",
}

CATEGORIZE_SYSTEM_PROMPT = """\
You are a data analyst who categorizes personal data exports and extracts \
structured, factual information from them. Report only what the data \
shows; never guess."""

CATEGORIZE_PROMPT = """\
Analyze the following data export. Extract specific numbers and metrics \
where they appear.

File: {file_name}

## What is already known about this user

{profile_context}

## Tasks

1. Write a detailed summary of the file and classify it into categories.
2. Extract factual user information. Hard facts only, no inferences.

## Categories

Always consider:
{base_categories}

Also identify any other relevant categories, for example:
{suggested_categories}

## Extracted profile

Use only these section names: {sections}. Record only facts actually \
found in this file, e.g.
- demographics: name, age, gender, location(s)
- financial: income, savings, totalSpent, monthlySpending, \
transactionCount, averageTransactionAmount
- professional: employer, title, experience, education, skills
- social: connection counts, platforms used, activity frequency
- health: conditions, exercise habits
- travel: tripCount, destinations, accommodation preferences
- technology: devices, operating systems, software
- transportation: rides (with a total), totalCost, averageCost
- interests: a list of strings

## Output

Return one JSON object:
{{
  "fileName": "{file_name}",
  "fileType": "export type (e.g. facebook, bank statement)",
  "summary": "3-5 sentence summary",
  "categories": {{
    "categoryName": {{
      "relevance": 0-10,
      "summary": "analysis of this category",
      "dataPoints": ["specific data point"]
    }}
  }},
  "entityNames": ["entity"],
  "insights": ["insight"],
  "sensitiveInfo": true or false,
  "extractedProfile": {{"demographics": {{}}, "financial": {{}}, "interests": []}}
}}

Only include categories with relevance above 0.

## File content

{content}"""


def _bullets(categories: dict[str, str]) -> str:
    return "\n".join(f"- {name}: {description}" for name, description in categories.items())


def build_categorize_prompt(
    file_name: str,
    content: str,
    profile_context: str,
    sections: tuple[str, ...],
) -> str:
    return CATEGORIZE_PROMPT.format(
        file_name=file_name,
        profile_context=profile_context or "Nothing yet.",
        base_categories=_bullets(BASE_CATEGORIES),
        suggested_categories=_bullets(SUGGESTED_CATEGORIES),
        sections=", ".join(sections),
        content=content,
    )
