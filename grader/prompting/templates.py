from __future__ import annotations

import json
from typing import Any, Dict, List

from ..types import DEFAULT_STUDENT_NAME, GradingRequest, Rubric

LENIENCY_INSTRUCTIONS: Dict[str, str] = {
    "strict": (
        "Grade STRICTLY. Apply the rubric rigorously with no benefit of the doubt. "
        "Deduct points for any deviation, even minor ones. Expect near-perfect work for full marks."
    ),
    "normal": (
        "Grade FAIRLY and OBJECTIVELY. Apply the rubric as written. "
        "Give credit where due but deduct for clear shortcomings."
    ),
    "lenient": (
        "Grade LENIENTLY. Give the student the benefit of the doubt where reasonable. "
        "Focus more on what the student did well. Minor issues should result in only small deductions."
    ),
    "very_lenient": (
        "Grade VERY LENIENTLY. Be generous with scoring. Focus primarily on effort and understanding shown. "
        "Only deduct for major, fundamental issues. Minor errors and formatting issues should be overlooked."
    ),
}


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_structured_rubric(rubric: Any) -> bool:
    if not isinstance(rubric, dict):
        return False
    return any(
        isinstance(v, dict)
        and isinstance(v.get("max_points"), (int, float))
        and not isinstance(v.get("max_points"), bool)
        for v in rubric.values()
    )


def _rubric_sections(rubric: Rubric | None, max_score: str) -> tuple[str, str]:
    if not rubric:
        return "", (
            "No rubric was provided. Based on the assignment instructions above, create your own reasonable "
            f"grading criteria (3-7 categories) with point values that add up to {max_score}. "
            "Evaluate the submission against those criteria."
        )
    if is_structured_rubric(rubric):
        return f"GRADING RUBRIC:\n{json.dumps(rubric, indent=2, ensure_ascii=False)}", (
            "The rubric above has specific criteria with point values. For each criterion in the rubric, "
            'provide a score (out of its max_points) and feedback in the "rubric_breakdown" field.'
        )
    rubric_text = json.dumps(rubric, indent=2, ensure_ascii=False) if isinstance(rubric, dict) else str(rubric)
    return f"GRADING RUBRIC:\n{rubric_text}", (
        "The rubric above is in freeform/text format. Read it carefully, identify the grading criteria described, "
        f"and create your own reasonable point breakdown that adds up to the maximum score of {max_score}. "
        'For each criterion you identify, provide a score and feedback in the "rubric_breakdown" field.'
    )


def _response_skeleton(student_name: str, max_score: str, compact: bool = False) -> str:
    name = json.dumps(student_name or DEFAULT_STUDENT_NAME, ensure_ascii=False)
    if compact:
        return (
            "{\n"
            f'  "student_name": {name},\n'
            '  "total_score": <number>,\n'
            f'  "max_score": {max_score},\n'
            '  "percentage": <number>,\n'
            '  "rubric_breakdown": {\n'
            '    "<criterion_name>": {"score": <number>, "max_points": <number>, "feedback": "<feedback string>"}\n'
            "  },\n"
            '  "strengths": ["<strength>"],\n'
            '  "improvements": ["<improvement>"],\n'
            '  "overall_feedback": "<summary>"\n'
            "}"
        )
    return (
        "{\n"
        f'  "student_name": {name},\n'
        '  "total_score": <number>,\n'
        f'  "max_score": {max_score},\n'
        '  "percentage": <number>,\n'
        '  "rubric_breakdown": {\n'
        '    "<CriterionName>": {\n'
        '      "score": <number>,\n'
        '      "max_points": <number>,\n'
        '      "feedback": "<specific feedback>"\n'
        "    }\n"
        "  },\n"
        '  "strengths": ["<strength 1>", "<strength 2>"],\n'
        '  "improvements": ["<improvement 1>", "<improvement 2>"],\n'
        '  "overall_feedback": "<2-3 sentence summary>"\n'
        "}"
    )


def build_grading_prompt(request: GradingRequest) -> str:
    max_score = _format_number(request.max_score)
    leniency = request.leniency if request.leniency in LENIENCY_INSTRUCTIONS else "normal"
    rubric_section, rubric_instruction = _rubric_sections(request.rubric, max_score)

    parts: List[str] = [
        "You are an expert academic grader. Grade the following student submission carefully and objectively.",
        f"GRADING LENIENCY: {leniency.upper()}\n{LENIENCY_INSTRUCTIONS[leniency]}",
        f"ASSIGNMENT INSTRUCTIONS:\n{request.instructions.strip()}",
    ]
    if rubric_section:
        parts.append(rubric_section)
    header = f"MAXIMUM SCORE: {max_score}"
    if request.student_name:
        header += f"\nSTUDENT: {request.student_name}"
    parts.append(header)
    parts.append(f"STUDENT SUBMISSION:\n{request.submission.strip()}")
    if request.note and request.note.strip():
        parts.append(f"ADDITIONAL NOTES FROM GRADER:\n{request.note.strip()}")
    parts.append("---\n" + rubric_instruction)
    parts.append(
        "IMPORTANT RULES:\n"
        '- The "rubric_breakdown" must have only 3-7 TOP-LEVEL criteria (e.g. "Functionality", "Code Quality"). '
        "Do NOT list every sub-item as its own key.\n"
        '- Each criterion MUST have "score" (number), "max_points" (number), and "feedback" (string).\n'
        '- The sum of all "score" values must equal "total_score".\n'
        f'- The sum of all "max_points" values must equal {max_score}.\n'
        '- "percentage" must equal round(total_score / max_score * 100).'
    )
    parts.append(
        "Respond with ONLY a valid JSON object. No markdown fences, no explanation outside the JSON.\n\n"
        + _response_skeleton(request.student_name, max_score)
    )
    return "\n\n".join(parts)


def build_correction_prompt(student_name: str, max_score: float) -> str:
    return (
        "Your response was not valid JSON. Please respond with ONLY a valid JSON object, no other text. "
        "Use this exact structure:\n\n"
        + _response_skeleton(student_name, _format_number(max_score), compact=True)
    )


def generate_sample_rubric() -> Dict[str, Any]:
    return {
        "Content Quality": {
            "max_points": 30,
            "description": "Depth and accuracy of content",
            "criteria": [
                "Demonstrates thorough understanding of the topic",
                "Uses relevant evidence and examples",
                "Addresses all key aspects of the assignment",
                "Shows critical thinking and analysis",
            ],
        },
        "Organization": {
            "max_points": 20,
            "description": "Structure and flow of the work",
            "criteria": [
                "Clear introduction with thesis/purpose statement",
                "Logical paragraph organization",
                "Smooth transitions between ideas",
                "Strong conclusion that ties everything together",
            ],
        },
        "Writing Quality": {
            "max_points": 20,
            "description": "Grammar, style, and clarity",
            "criteria": [
                "Clear and concise writing style",
                "Proper grammar and punctuation",
                "Appropriate academic tone",
                "Varied sentence structure",
            ],
        },
        "Requirements Met": {
            "max_points": 20,
            "description": "Following assignment requirements",
            "criteria": [
                "Meets minimum length requirements",
                "Addresses the specific prompt/question",
                "Follows formatting guidelines",
                "Submitted on time",
            ],
        },
        "Sources & Citations": {
            "max_points": 10,
            "description": "Use and citation of sources",
            "criteria": [
                "Uses credible and relevant sources",
                "Proper citation format (APA/MLA/etc.)",
                "Adequate number of sources",
                "Sources support the arguments made",
            ],
        },
    }
