"""Prompt templates for transcript processing and selection correction."""

from __future__ import annotations

from murmur.config import CorrectionMode, ProcessingMode

JSON_OUTPUT_INSTRUCTION = (
    'Respond with a JSON object of the form {"text": "<result>"} and nothing else.'
)

PROCESSING_PROMPTS = {
    ProcessingMode.CLEAN: """You are a transcription cleanup assistant. Your task is to:
1. Remove filler words (um, uh, like, you know, etc.)
2. Add proper punctuation and capitalization
3. Fix obvious grammatical errors
4. Keep the original meaning and tone intact
5. Do NOT add or remove substantive content""",
    ProcessingMode.POLISH: """You are a professional writing assistant. Your task is to:
1. Remove all filler words and verbal tics
2. Add proper punctuation and capitalization
3. Fix grammar and improve clarity
4. Restructure sentences for better flow if needed
5. Maintain the speaker's voice and intent
6. Make it sound natural and professional""",
}

CORRECTION_PROMPTS = {
    CorrectionMode.GRAMMAR: """You are a proofreading assistant. Fix spelling, grammar and punctuation
mistakes in the text below. Keep the wording, meaning, tone and formatting
unchanged wherever they are already correct.""",
    CorrectionMode.REWRITE: """You are a writing assistant. Rewrite the text below to improve its clarity
and flow. Keep the original meaning, language and roughly the same length.""",
}


def processing_prompt(mode: ProcessingMode, text: str) -> str:
    """Prompt for ``clean`` or ``polish``. Raw mode never builds a prompt."""
    try:
        instructions = PROCESSING_PROMPTS[ProcessingMode(mode)]
    except KeyError:
        raise ValueError(f"No prompt for processing mode {mode!r}") from None
    return f"{instructions}\n\n{JSON_OUTPUT_INSTRUCTION}\n\nText to process:\n{text}"


def correction_prompt(mode: CorrectionMode, text: str, custom_prompt: str = "") -> str:
    mode = CorrectionMode(mode)
    if mode is CorrectionMode.CUSTOM and custom_prompt.strip():
        instructions = custom_prompt.strip()
    elif mode is CorrectionMode.CUSTOM:
        instructions = CORRECTION_PROMPTS[CorrectionMode.GRAMMAR]
    else:
        instructions = CORRECTION_PROMPTS[mode]
    return f"{instructions}\n\n{JSON_OUTPUT_INSTRUCTION}\n\nText to correct:\n{text}"
