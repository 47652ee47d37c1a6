"""
Prompt templates for the generation providers.
"""

from typing import List, Sequence

from research_chat.models import NO_ANSWER_PLACEHOLDER


TITLE_AND_QUESTIONS_PROMPT = """You are a highly intelligent research assistant. Your job is to analyze the given research topic and do two things:

1. Generate a clear, descriptive research title (3-8 words) that captures the essence of the topic.
2. Generate 2-4 thoughtful clarifying questions that would help refine or better understand the user's research focus.

Clarifying questions should explore possible ambiguities or missing details. For example, if the topic is "cricket", ask questions like:
- "Are you focusing on a particular team, tournament, or the sport in general?"
- "Do you want to study cricket from a historical, statistical, or cultural perspective?"

Research Topic: "{topic}"

Return your response strictly as a JSON object in this format:
{{
  "title": "Your generated title here",
  "questions": ["Question 1", "Question 2", "Question 3"]
}}

Guidelines:
- The title must be concise, specific, and relevant to the topic. If the topic is too vague, end the title with "..." to indicate it needs clarification.
- The questions must aim to narrow down scope, specify intent, or clarify focus.
- Do NOT include any text, notes, or explanations outside the JSON."""


PRIMARY_RESEARCH_PROMPT = """You are an expert research assistant. Generate a complete, professional research page based on the following information.

Original Research Topic:
"{topic}"

{context_heading}
{qa_context}
{web_search_block}
CRITICAL INSTRUCTIONS:
1. You are conducting ACTUAL RESEARCH - not giving advice on how to do research
2. Provide SUBSTANTIVE FINDINGS, DATA, and ANALYSIS - not research methodology suggestions
3. Generate ONLY the research content - NO preambles, introductions, or meta-commentary
4. DO NOT start with phrases like "I'd like to help you" or "Here is your research"
5. DO NOT include clarifying questions - those have already been answered
6. DO NOT use bold or italic formatting anywhere in your response
7. Use clean, professional formatting with simple headings and bullet points only

The research page must include these sections:

1. Refined Research Question
2. Executive Summary
3. Current State of the Field
4. Key Findings & Analysis
5. Expert Perspectives
6. Case Studies or Examples
7. Trends & Future Directions
8. Challenges & Considerations
9. Recommendations
10. Cited Sources

Formatting requirements:
- Return Markdown with clear section headings (#, ##, ###)
- Maintain a formal, academic tone
- Make links readable: "Link text (URL)" instead of markdown links
- DO NOT include provider names or duplicate headers
- Output ONLY the research page content"""


WEB_SEARCH_BLOCK = """
You have access to web search. Use it to gather current, authoritative information:
recent developments, statistics, expert analysis and academic studies. Cite every
source inline.
"""


SECONDARY_RESEARCH_PROMPT = """You are a research assistant. Create a comprehensive research page based on the original research topic{qa_suffix}.

Original Research Topic: "{topic}"

{context_heading}
{qa_context}

Create a well-structured research page that includes:
1. A refined research question based on the clarifications
2. Key findings with supporting evidence and data
3. Important considerations and scope
4. Notable sources and directions for further reading
5. About 1000 to 2000 words in total

CRITICAL FORMATTING REQUIREMENTS:
- ABSOLUTELY NO BOLD OR ITALIC FORMATTING - never use asterisks or underscores for emphasis
- Use simple headings with # and ## only
- Make links clean and readable: "Link text (URL)" instead of markdown links
- Use bullet points with - where appropriate
- Do not include provider names (Gemini, Google) or headers naming yourself
- Do not describe how to conduct the research; present the research itself

Format the response in clean markdown."""


SUMMARY_PROMPT = """Summarize the following combined research (it may include sections from several research assistants) into 2 to 3 concise paragraphs, totaling about 150 to 250 words. Use a neutral, professional tone.

IMPORTANT: Do not use any bold or italic formatting. Use plain text only. Do not include headings or lists. Just write clear, simple paragraphs.

CONTENT START
{content}
CONTENT END"""


def format_qa_context(questions: Sequence[str], answers: Sequence[str]) -> str:
    """Render clarifying questions and answers as numbered Q/A pairs."""
    if not questions:
        return "No specific clarifying questions were provided. Generate comprehensive research based on the topic itself."
    blocks: List[str] = []
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) and answers[i] else NO_ANSWER_PLACEHOLDER
        blocks.append(f"Q{i + 1}: {question}\nA{i + 1}: {answer}")
    return "\n\n".join(blocks)


def title_and_questions_prompt(topic: str) -> str:
    return TITLE_AND_QUESTIONS_PROMPT.format(topic=topic)


def primary_research_prompt(topic: str, questions: Sequence[str], answers: Sequence[str], web_search: bool = False) -> str:
    return PRIMARY_RESEARCH_PROMPT.format(
        topic=topic,
        context_heading="Clarifying Questions and Answers:" if questions else "Research Context:",
        qa_context=format_qa_context(questions, answers),
        web_search_block=WEB_SEARCH_BLOCK if web_search else "",
    )


def secondary_research_prompt(topic: str, questions: Sequence[str], answers: Sequence[str]) -> str:
    return SECONDARY_RESEARCH_PROMPT.format(
        topic=topic,
        qa_suffix=" and the clarifying questions and answers provided" if questions else "",
        context_heading="Clarifying Questions and Answers:" if questions else "Research Context:",
        qa_context=format_qa_context(questions, answers),
    )


def summary_prompt(content: str) -> str:
    return SUMMARY_PROMPT.format(content=content)
