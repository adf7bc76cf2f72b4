"""
Generative Tool Prompts

One template per generative tool: element selection, CSS generation,
layout transformation, text transformation and summarization.
"""

SELECT_ELEMENTS_PROMPT = """
You are an expert DOM element selector. Based on the user's criteria and page context, identify the most relevant CSS selectors.

User Criteria: "{criteria}"
Context for Selection: "{context}"
Page URL: {url}
Page Title: {title}

Sample of Potentially Relevant Elements on Page:
{elements}

Instructions:
- Return a JSON object with a "selected" key, which is an array of CSS selectors.
- Prioritize IDs if stable, otherwise robust class or attribute selectors. Avoid generic selectors like 'div' or 'p' unless highly qualified.
- If multiple distinct groups of elements match, include selectors for each.
- If no elements seem to match, return an empty array for "selected".
- Provide a brief "reasoning" for your choices.

Respond with ONLY valid JSON:
{{
    "selected": ["selector1", ".some-class > li", "#specificId"],
    "reasoning": "Brief explanation of why these selectors were chosen."
}}
"""

GENERATE_CSS_PROMPT = """
You are an expert CSS generator. Generate CSS code based on the user's description and provided context.

User's Desired Style: "{description}"

{style_context}
Current Page Theme: {theme}

Instructions for CSS Generation:
- Generate clean, modern CSS.
- Use specific selectors if target elements are provided. Otherwise, generate reasonably scoped CSS (body, main content, headings, paragraphs).
- If the request is about a theme (e.g., "dark mode"), provide comprehensive rules for common elements.
- IMPORTANT: Return ONLY the raw CSS code. No explanations, no markdown backticks, no "Here's the CSS:" prefix.
- If you cannot generate meaningful CSS for the request, return an empty string.

Example for "make headings blue":
h1, h2, h3 {{ color: blue; }}

CSS Code:
"""

TRANSFORM_LAYOUT_PROMPT = """
Generate CSS for a page layout transformation.
Transformation Goal: "{transformation}"
Target Area/Selector Hint: "{target}" (If this is 'body', consider broader page structure unless specified otherwise)

Current Layout Context:
- Navigation Present: {has_navigation}
- Sidebar Present: {has_sidebar}
- Footer Present: {has_footer}
- Main Content Area Selector: {main_content_selector}

Instructions:
- Generate robust CSS to achieve the layout transformation. Use flexbox or grid where appropriate.
- Target the CSS as specifically as possible to the intended area (e.g., using '{target}' or its children).
- Avoid overly broad selectors like 'div' or '*' unless necessary.
- Return ONLY the raw CSS code. No explanations, no markdown, just CSS.
- If the transformation cannot be achieved with CSS, return an empty string.

CSS Code:
"""

TRANSFORM_TEXT_PROMPT = """
Transform the following text.
Original Text: "{text}"
Transformation Type: {transform_type}
Specific Instructions: {instructions}

Rules:
- Adhere strictly to the transformation type and instructions.
- If summarizing, be concise. If rephrasing, maintain meaning. If de-clickbaiting, make it factual.
- Return ONLY the transformed text. No explanations and no extra phrases.
- If the transformation does not make sense for the given text, return the original text.
"""

SUMMARIZE_PROMPT = '''
Summarize the following text to a {length} length.
Focus on the key information and main points.
If the text appears to be a list of items or an article, summarize accordingly.

Text:
"""
{text}
"""

Return only the summary.
'''
