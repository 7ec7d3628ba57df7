"""
Prompt assembly for review classification.

The template itself is operator-supplied (``BASE_PROMPT_TEMPLATE``) and must
contain the ``{rankings}`` placeholder, for example:

    Return a response using one of these words: {rankings}. The response should
    be a single word and should not contain any other text. The response should
    be based on the following review:
"""

RANKINGS_PLACEHOLDER = "{rankings}"


def build_classification_prompt(template: str, candidate_names: list[str], review: str) -> str:
    """
    Substitute the comma-joined candidate labels into the template and append the review.

    Only the placeholder token is replaced; other braces in the template are left as-is.
    """
    prompt = template.replace(RANKINGS_PLACEHOLDER, ", ".join(candidate_names))
    return prompt + review
