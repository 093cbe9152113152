# WorkLog/prompts.py

"""
This file contains all the LLM prompts used by WorkLog: the similarity
questions behind ledger merging, category classification and the daily
bullet-point rollup.
"""

# --- Similarity Prompts ---

SAME_CLIENT_PROMPT = """
Compare these two potential client references and determine if they refer to the same client.

Client 1: "{client1}"
Client 2: "{client2}"

Consider:
1. Are they different representations of the same client?
2. Could one be a subsidiary or division of the other?
3. Are these common variations or abbreviations?
4. For individual names, could these be the same person with name variations?

Response must be a JSON object with:
{{
  "isMatch": boolean,
  "confidence": number (0.0 to 1.0),
  "explanation": string,
  "patterns": string[]
}}

Example response:
{{
  "isMatch": true,
  "confidence": 0.95,
  "explanation": "Both refer to same company with standard abbreviation (Corp vs Corporation)",
  "patterns": []
}}
"""

SAME_PROJECT_PROMPT = """
Compare these two project names and determine if they refer to the same project or work.
Consider them the same if they are clearly variations of the same project.

Project 1: "{project1}"
Project 2: "{project2}"

Consider:
1. Are these exactly the same project?
2. Are these common variations or abbreviations of the same project?
   Examples:
   - "Tax Return Prep" = "Tax Return Preparation"
   - "DB Migration" = "Database Migration"
   - "Dev" = "Development"
   - "App" = "Application"
3. Do they have the same core meaning and purpose?
4. Would these be tracked as the same project in a time tracking system?

Return false if:
1. They are different types of work (e.g., "Tax Return" vs "Bookkeeping")
2. They are different phases or components that could be separate projects
3. There is significant ambiguity about whether they are the same project

Respond with just true or false.
"""

COMPARE_DESCRIPTIONS_PROMPT = """
Compare these two work descriptions and determine if they should be combined:

Description 1: "{description1}"
Description 2: "{description2}"

Consider:
1. Are they part of the same overall task or project?
2. Do they represent different stages or aspects of the same work?
3. Are they just different ways of saying the same thing?
4. Are they sequential steps in the same process?
5. IMPORTANT: If one description is just a more detailed version of the other, mark them as the same task

Rules for response:
1. If descriptions are the same task (even with different detail levels):
   - Set shouldCombine=false
   - Set areSameTask=true
2. If descriptions are different but related:
   - Set shouldCombine=true
   - Set areSameTask=false
   - Combine them into one comma-joined description in combinedDescription,
     using past tense consistently
3. If they are unrelated, set both shouldCombine and areSameTask to false
4. Keep explanations brief and focused
5. Preserve technical terms exactly as written
6. Return ONLY a valid JSON object with no prefix text

Response MUST be a JSON object with exactly these fields:
{{
  "shouldCombine": boolean,
  "combinedDescription": string,
  "explanation": string,
  "areSameTask": boolean
}}
"""

# --- Category Prompts ---

CATEGORIZE_DESCRIPTION_PROMPT = """
As an accounting professional, analyze this work description and categorize it:
"{text}"

Rules:
1. Use standard accounting/tax service categories
2. Be specific but not too granular
3. Group similar activities together
4. Consider the business context
5. Return ONLY the category name, no explanation
6. Use one of these categories if possible:
{category_list}
   - Only create a new category if none of these fit
"""

STANDARD_CATEGORIES = [
    "Tax Return Preparation",
    "Tax Planning & Strategy",
    "Financial Statement Review",
    "Business Advisory",
    "Compliance & Reporting",
    "Client Communication",
    "Bookkeeping & Accounting",
    "Audit Support",
    "International Tax Services",
    "Estate & Trust Services",
]

CATEGORY_MERGE_PROMPT = """
Analyze these accounting service categories and suggest which ones should be merged:
{categories}

Rules:
1. Only merge if truly related and would make sense on an invoice
2. Keep specific service types separate (e.g. don't merge "Tax Planning" with "Bookkeeping")
3. Return pairs to merge as a JSON array of [from, to] arrays
4. Return [] if no merges needed
5. Consider client readability and professional standards
"""

# --- Daily Rollup Prompts ---

WORK_COVERED_PROMPT = """
Compare this new work description with the existing bullet points and determine if the work is already covered.

New work description:
"{description}"

Existing bullet points:
{bullet_points}

Consider:
1. The core activities and outcomes
2. If the new work is just a more specific version of an existing point
3. If the work type is already represented

Return ONLY "true" if the work is already covered, or "false" if it represents new/different work.
"""

BULLET_POINT_PROMPT = """
Create a concise, professional bullet point summarizing this work description.
The bullet point should:
1. Start with "- "
2. Be clear and specific
3. Focus on the core work/outcome
4. Use active voice
5. Be 10-15 words maximum

Work description:
"{description}"

Return ONLY the bullet point, nothing else.
"""
