"""
Prompt Formatter - turn chat messages into a single generation prompt

Three strategies, tried in order:
1. The tokenizer's own chat template
2. A hand-written format for a recognised model family
3. A plain "Role: content" transcript

Formatting is pure; the only side effect is logging.
"""

import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

Message = Dict[str, str]

# Checked in order; more specific markers first
FAMILY_MARKERS = (
    ("qwen", ("qwen",)),
    ("llama-3", ("llama-3", "llama3")),
    ("llama-2", ("llama-2", "llama2")),
    ("llama", ("llama",)),
    ("mixtral", ("mixtral",)),
    ("mistral", ("mistral",)),
    ("zephyr", ("zephyr",)),
    ("phi", ("phi",)),
)


def _chatml(messages: List[Message]) -> str:
    parts = [f"<|im_start|>{m['role']}\n{m['content']}<|im_end|>\n" for m in messages]
    return "".join(parts) + "<|im_start|>assistant\n"


def _llama3(messages: List[Message]) -> str:
    parts = ["<|begin_of_text|>"]
    for m in messages:
        parts.append(f"<|start_header_id|>{m['role']}<|end_header_id|>\n\n{m['content']}<|eot_id|>")
    parts.append("<|start_header_id|>assistant<|end_header_id|>\n\n")
    return "".join(parts)


def _inst(messages: List[Message]) -> str:
    # Mistral/Llama-2 have no system role: fold system text into the first user turn
    system = "\n\n".join(m['content'] for m in messages if m['role'] == 'system')
    out = []
    pending_system = system
    for m in messages:
        if m['role'] == 'system':
            continue
        if m['role'] == 'user':
            content = f"{pending_system}\n\n{m['content']}" if pending_system else m['content']
            pending_system = ""
            out.append(f"[INST] {content} [/INST]")
        else:
            out.append(f" {m['content']}</s>")
    if pending_system:
        out.append(f"[INST] {pending_system} [/INST]")
    return "".join(out)


def _zephyr(messages: List[Message]) -> str:
    parts = [f"<|{m['role']}|>\n{m['content']}</s>\n" for m in messages]
    return "".join(parts) + "<|assistant|>\n"


def _phi(messages: List[Message]) -> str:
    parts = [f"<|{m['role']}|>\n{m['content']}<|end|>\n" for m in messages]
    return "".join(parts) + "<|assistant|>\n"


class PromptFormatter:
    """Chat prompt rendering for one model"""

    MANUAL_FORMATS = {
        "qwen": _chatml,
        "mistral": _inst,
        "mixtral": _inst,
        "llama": _inst,
        "llama-2": _inst,
        "llama-3": _llama3,
        "zephyr": _zephyr,
        "phi": _phi,
    }

    def __init__(self, model_name: str, tokenizer=None):
        """
        Args:
            model_name: Hub id; the family is read from it
            tokenizer: Tokenizer whose chat_template (if set) takes priority
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = self._detect_model_family(model_name)
        self.has_chat_template = getattr(tokenizer, 'chat_template', None) is not None

        if self.has_chat_template:
            self.method = "tokenizer_template"
        elif self.model_family in self.MANUAL_FORMATS:
            self.method = "manual"
        else:
            self.method = "transcript"
            logger.warning(f"Unrecognised model {model_name}; prompts will be plain transcripts")

        logger.info(f"Prompt formatting for {model_name}: {self.method} ({self.model_family})")

    def _detect_model_family(self, model_name: str) -> str:
        name_lower = model_name.lower()
        for family, markers in FAMILY_MARKERS:
            if any(marker in name_lower for marker in markers):
                return family
        return "generic"

    def format_messages(self, messages: List[Message]) -> str:
        """
        Render messages so the prompt ends where the assistant reply begins.

        Args:
            messages: [{'role': 'system'|'user'|'assistant', 'content': str}, ...]

        Raises:
            ValueError: If messages is empty

        Examples:
            >>> PromptFormatter("Qwen/Qwen2.5-3B-Instruct").format_messages(
            ...     [{"role": "user", "content": "Hi"}])
            '<|im_start|>user\\nHi<|im_end|>\\n<|im_start|>assistant\\n'
        """
        if not messages:
            raise ValueError("messages must not be empty")

        if self.has_chat_template:
            try:
                return self.tokenizer.apply_chat_template(
                    messages,
                    tokenize=False,
                    add_generation_prompt=True
                )
            except Exception as e:
                logger.warning(f"Chat template for {self.model_name} failed ({e}); using fallback format")

        render = self.MANUAL_FORMATS.get(self.model_family)
        if render is not None:
            return render(messages)

        turns = [f"{m['role'].capitalize()}: {m['content']}" for m in messages]
        return "\n\n".join(turns) + "\n\nAssistant:"

    def get_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "formatting_method": self.method,
        }
