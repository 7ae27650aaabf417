from __future__ import annotations

from textwrap import dedent
from typing import Iterable

QUESTION_TYPE_GLOSSARY = dedent(
    """
    - MCQ: Multiple Choice (single correct)
    - MSQ: Multiple Select (multiple correct)
    - NAT: Numerical Answer
    - SUB: Subjective
    """
).strip()

KATEX_RULES = dedent(
    r"""
    KaTeX (MANDATORY for ALL math, tables, matrices):
    - Inline math: $x^2 + y^2 = z^2$
    - Display math: $$\int_0^1 f(x)dx$$
    - Fractions: $\frac{a}{b}$
    - Matrices: $$\begin{bmatrix}1 & 2\\3 & 4\end{bmatrix}$$
    - Bold variables: \mathbf{P}, \mathbf{Q}
    - Greek letters: \alpha, \beta, \gamma
    - Symbols: \sum, \prod, \int, \infty

    TABLES (CRITICAL - NEVER use plain text tables):
    WRONG: Column-I | Column-II or using || symbols
    RIGHT: $$\begin{array}{|c|l|c|l|}\hline\textbf{Column-I} & & \textbf{Column-II} & \\\hline P. & \text{This house is in a mess.} & 1. & \text{Alright, I won't bring it up.}\\\hline\end{array}$$

    KEY TABLE RULES:
    - Use $$\begin{array}{|c|l|c|l|}...\end{array}$$ for ALL tables
    - Use \hline for horizontal lines, & to separate columns, \\ to end rows
    - Use \text{} for non-math text and \textbf{} for bold headers
    - Column alignment: |c| = centered, |l| = left, |r| = right
    """
).strip()

SVG_RULES = dedent(
    """
    SVG (MANDATORY for ALL diagrams):
    - Venn diagrams, circuits, graphs, geometric figures
    - Use clean SVG with proper viewBox
    - Label all elements accurately
    - Match original exactly
    - Embed the <svg>...</svg> fragment inside question_statement where the figure appears
    """
).strip()

EXTRACTION_RULES = dedent(
    r"""
    OPTIONS (MCQ/MSQ):
    - Use KaTeX for math: ["$P = 6$; $Q = 5$; $R = 3$", "$P = 5$; $Q = 6$; $R = 3$"]
    - Ensure ALL options are visible

    VALIDATION:
    - Complete question statement
    - ALL options visible (MCQ/MSQ)
    - No "continued..." text
    - All math in KaTeX
    - All tables in KaTeX array format
    - All diagrams in SVG
    - NO plain text tables with || symbols

    Return ONLY valid JSON (no markdown):
    [{"question_type":"MCQ","question_statement":"What is $x^2$ if $x=2$?","options":["$2$","$4$","$8$","$16$"]}]

    Empty if no complete questions: []
    """
).strip()

RETRY_PASS_PREAMBLE = dedent(
    """
    SECOND PASS: an earlier scan of this page returned NO questions. Look again very carefully.
    Questions may be small, rotated, split into columns, or follow long instructions.
    Extract EVERY complete question you can see; only return [] if the page truly has none.
    """
).strip()

VERIFICATION_PROMPT = dedent(
    r"""
    You are an expert verifier checking if question extraction is PERFECT.

    Compare the original image with the extracted JSON below:

    {candidate}

    VERIFICATION CRITERIA (all must be met for 95+):
    1. Question text is word-for-word accurate
    2. ALL mathematical expressions are in proper KaTeX format ($$...$$)
    3. ALL tables MUST use KaTeX array format: $$\begin{{array}}{{|c|l|}}\hline...\end{{array}}$$
    4. ALL matrices MUST use KaTeX: $$\begin{{bmatrix}}...\end{{bmatrix}}$$
    5. ALL diagrams/visual elements are accurately represented in SVG
    6. ALL options are complete and accurate (if MCQ/MSQ)
    7. Question structure is complete (no missing parts)
    8. NO plain text tables with || or similar - ONLY KaTeX arrays

    SCORING GUIDE:
    - 99-100: PERFECT extraction, indistinguishable from original
    - 85-94: Minor formatting issues (small KaTeX errors, slightly inaccurate SVG)
    - 75-84: Missing elements or noticeable errors (incomplete options, wrong math)
    - Below 75: Major problems (missing questions, wrong content, plain text tables)

    CRITICAL: Be strict. If you see plain text tables (||) instead of KaTeX arrays, score below 99.

    Return ONLY this JSON format (no explanation):
    {{"score": 99, "feedback": "Tables should use KaTeX array format instead of plain text"}}

    The feedback should be specific about what needs fixing to reach 99+ score.
    """
).strip()

COUNT_PROMPT = dedent(
    """
    Count the TOTAL number of complete questions on this page.

    Include all question types: MCQ, MSQ, NAT, subjective, matching, assertion-reason, etc.

    IMPORTANT:
    - Count ONLY complete questions (not partial/continued from previous page)
    - Do NOT count headers, instructions, or non-question text
    - If a question spans multiple parts, count it as ONE question

    Return ONLY a JSON object (no explanation):
    {"count": 5}
    """
).strip()

REPAIR_PROMPT = dedent(
    r"""
    You previously extracted questions from an image, but the extraction needs improvement.

    PREVIOUS EXTRACTION:
    {previous}

    VERIFICATION FEEDBACK:
    {feedback}

    CRITICAL FORMATTING RULES:

    1. TABLES (matching questions, data tables, etc.):
       WRONG: Using || or plain text
       RIGHT: $$\begin{{array}}{{|c|l|c|l|}}\hline\textbf{{Column-I}} & & \textbf{{Column-II}} & \\\hline P. & \text{{Statement}} & 1. & \text{{Response}}\\\hline\end{{array}}$$

    2. MATRICES:
       WRONG: Plain text or brackets
       RIGHT: $$\begin{{bmatrix}}1 & 2\\3 & 4\end{{bmatrix}}$$

    3. MATH EXPRESSIONS:
       WRONG: x^2 or plain text
       RIGHT: $x^2$ (inline) or $$\int_0^1 f(x)dx$$ (display)

    4. DIAGRAMS:
       Use complete SVG with proper viewBox, labels, and styling

    5. OPTIONS:
       Use KaTeX for math in options: ["$P = 6$; $Q = 5$; $R = 3$"]

    Fix ONLY the issues mentioned in the feedback. Return the COMPLETE corrected JSON with ALL questions.

    Return ONLY valid JSON (no markdown):
    [{{"question_type":"MCQ","question_statement":"...","options":[...]}}]
    """
).strip()

EMPTY_PAGE_FEEDBACK = (
    "No questions extracted. Scan image again and extract ALL complete questions visible on the page."
)
EMPTY_PAGE_FEEDBACK_ESCALATED = (
    "STILL no questions extracted. This page was flagged on the first pass. Re-read the ENTIRE "
    "image line by line, including margins and columns, and extract EVERY complete question."
)
ERROR_RETRY_FEEDBACK = "Previous attempt failed. Retrying with next API key..."


def mismatch_clause(expected: int, extracted: int) -> str:
    return (
        f" (CRITICAL: Expected {expected} questions but only extracted {extracted}. "
        "Make sure no questions are skipped.)"
    )


def build_extraction_prompt(enabled_types: Iterable[str], *, escalated: bool = False) -> str:
    type_list = ", ".join(enabled_types)
    header = dedent(
        f"""
        You are an expert at extracting questions from exam papers with PERFECT accuracy. Every detail matters.

        IMPORTANT RULES:
        1. Extract ONLY COMPLETE questions (ignore partial/continued questions)
        2. You MUST use KaTeX for ALL mathematical content, tables, and matrices
        3. You MUST create SVG for ALL visual elements (diagrams, circuits, graphs, etc.)
        4. Extraction must be 100% accurate - students should not notice any difference

        Question types to extract: {type_list}
        """
    ).strip()
    sections = [header, QUESTION_TYPE_GLOSSARY, "FORMATTING REQUIREMENTS:", KATEX_RULES, SVG_RULES, EXTRACTION_RULES]
    if escalated:
        sections.insert(0, RETRY_PASS_PREAMBLE)
    return "\n\n".join(sections)


def build_verification_prompt(candidate_raw_text: str) -> str:
    return VERIFICATION_PROMPT.format(candidate=candidate_raw_text)


def build_repair_prompt(previous_raw_text: str, feedback: str) -> str:
    return REPAIR_PROMPT.format(previous=previous_raw_text, feedback=feedback)
