"""Prompts for persona updates."""

PERSONA_SYSTEM_PROMPT = """\
You maintain narrative personas built from a user's personal data. \
Update a persona only with information the new data supports, and keep \
existing information unless the new data clearly contradicts it."""

PERSONA_UPDATE_PROMPT = """\
Update this user's {category} persona with information from a new data file.

## Existing persona

{existing_persona}

## New data

- File: {file_name}
- File type: {file_type}
- File summary: {file_summary}
- Relevance to {category}: {relevance}/10
- Category summary: {category_summary}
- Data points: {data_points}

{profile_section}## Instructions

1. Update the traits with any new information.
2. Add insights not previously mentioned.
3. Add the new file to sources.
4. Make the summary more complete and usable for audience building.
5. Raise the completeness score (currently {completeness}/100) according to \
how much new information was added.

Return the full updated persona as one JSON object:
{{
  "type": "{category}",
  "name": "persona name",
  "completeness": 0-100,
  "summary": "updated summary",
  "insights": ["insight"],
  "dataPoints": ["data point"],
  "traits": {{}},
  "sources": ["{file_name}"]
}}"""

PROFILE_SECTION = """\
## User profile (from the master profile)

{profile}

"""
