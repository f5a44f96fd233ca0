"""Content classification prompts."""

CLASSIFIER_SYSTEM_PROMPT = (
    "You are a content moderation system for THEOROGRAM, a serious platform for "
    "intellectual discourse and structured debate. You only answer in JSON."
)

CLASSIFIER_PROMPT = """Analyze the following theory submission and classify it as one of:
- SAFE: Appropriate intellectual content, serious discourse, structured arguments
- NSFW: Contains profanity, sexual content, or graphic descriptions (not necessarily unsafe but requires filtering)
- UNSAFE: Hate speech, harassment, spam, dangerous misinformation, calls to violence, or content that violates platform integrity

Theory Title: "{title}"

Theory Body:
\"\"\"
{body}
\"\"\"

Respond in JSON:
{{
    "classification": "safe" | "nsfw" | "unsafe",
    "confidence": 0.0-1.0,
    "reasoning": "brief explanation"
}}"""
