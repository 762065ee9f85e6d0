"""Push the cv-profile prompts to Langfuse as versioned chat prompts.

Run once to seed Langfuse, then edit prompts via the Langfuse UI.
Re-run to create a new version (old versions are preserved).

The prompt text is taken from app/core/fallback_prompts.py so the embedded
fallback and the seeded version start out identical.

Usage:
    python scripts/push_prompts.py
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from langfuse import Langfuse  # noqa: E402

from app.core.constants import DEFAULT_LLM_MODEL  # noqa: E402
from app.core.fallback_prompts import CV_PARSE_PROMPT, FALLBACK_PROMPTS  # noqa: E402

TEMPLATE_VARIABLES = ("cv_text", "additional_info")


def to_langfuse_template(template: str) -> str:
    """str.format template -> Langfuse mustache template ({x} -> {{x}}, {{ -> {)."""
    return template.format(**{name: "{{" + name + "}}" for name in TEMPLATE_VARIABLES})


def main():
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY")
    host = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

    if not public_key or not secret_key:
        print("Error: LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY must be set")
        sys.exit(1)

    client = Langfuse(
        public_key=public_key,
        secret_key=secret_key,
        host=host,
    )

    # ─── CV Parsing ──────────────────────────────────────────────────────

    prompt = FALLBACK_PROMPTS[CV_PARSE_PROMPT]
    client.create_prompt(
        name=CV_PARSE_PROMPT,
        type="chat",
        prompt=[
            {"role": "system", "content": prompt["system"]},
            {"role": "user", "content": to_langfuse_template(prompt["user"])},
        ],
        labels=["production"],
        config={
            "model": os.getenv("OPENAI_MODEL", DEFAULT_LLM_MODEL),
            **prompt["config"],
            "response_format": "json",
        },
    )
    print(f"Pushed: {CV_PARSE_PROMPT}")

    # Flush to ensure all events are sent
    client.flush()
    print("View at: https://cloud.langfuse.com → Prompts")


if __name__ == "__main__":
    main()
