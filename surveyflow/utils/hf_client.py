"""
HuggingFace Client - local chat model for survey generation

Responsibilities:
- Load tokenizer + causal LM (NF4 4-bit on CUDA when requested)
- Turn role-tagged message lists into completions
- JSON mode: greedy decoding plus repair of the raw text
- Report timing and token usage when asked

Design principles:
- One instance per process, passed to collaborators explicitly
- CUDA out-of-memory is logged and re-raised, never retried
- Chat formatting lives in PromptFormatter
"""

import time
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, List, Tuple, Union

import torch
from transformers import (
    AutoModelForCausalLM,
    AutoTokenizer,
    BitsAndBytesConfig
)

from surveyflow.utils.output_codec import repair_json
from surveyflow.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)

DEVICE_CUDA = "cuda"


@dataclass(frozen=True)
class GenerationStats:
    """Token usage and latency of one generate call"""
    prompt_tokens: int
    completion_tokens: int
    latency_ms: float

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class HuggingFaceClient:
    """Local transformers model behind generate_chat() / generate_json()"""

    def __init__(
        self,
        model_name: str,
        load_in_4bit: bool = True,
        device: str = DEVICE_CUDA,
        max_new_tokens: int = 768
    ) -> None:
        """
        Load tokenizer and model.

        Args:
            model_name: HuggingFace hub id, e.g. 'Qwen/Qwen2.5-3B-Instruct'
            load_in_4bit: Quantize to NF4 (ignored on CPU)
            device: 'cuda' or 'cpu'
            max_new_tokens: Default completion length

        Raises:
            RuntimeError: If CUDA is requested but unavailable
            torch.cuda.OutOfMemoryError: If the weights do not fit
        """
        if device == DEVICE_CUDA and not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available. Check nvidia-smi.")

        self.model_name = model_name
        self.device = device
        self.max_new_tokens = max_new_tokens
        self.quantized = load_in_4bit and device == DEVICE_CUDA

        logger.info(f"Loading {model_name} on {device} (4-bit: {self.quantized})")

        self.tokenizer = self._load_tokenizer()
        self.formatter = PromptFormatter(model_name, self.tokenizer)
        self.model = self._load_model()
        self.model.eval()

        self._log_cuda_memory("after model load")
        logger.info(f"HuggingFace client ready: {self.formatter.get_info()}")

    # ==================== LOADING ====================

    def _load_tokenizer(self):
        tokenizer = AutoTokenizer.from_pretrained(self.model_name)

        # generate() needs a pad id; reuse EOS where the model has one
        if tokenizer.pad_token is None:
            if tokenizer.eos_token is not None:
                tokenizer.pad_token = tokenizer.eos_token
            else:
                tokenizer.add_special_tokens({'pad_token': '[PAD]'})
                logger.warning("Tokenizer had no EOS token; added [PAD]")

        return tokenizer

    def _quantization_config(self) -> Optional[BitsAndBytesConfig]:
        if not self.quantized:
            return None
        return BitsAndBytesConfig(
            load_in_4bit=True,
            bnb_4bit_quant_type="nf4",
            bnb_4bit_compute_dtype=torch.bfloat16,
            bnb_4bit_use_double_quant=True
        )

    def _load_model(self):
        on_gpu = self.device == DEVICE_CUDA
        try:
            return AutoModelForCausalLM.from_pretrained(
                self.model_name,
                quantization_config=self._quantization_config(),
                device_map="auto" if on_gpu else None,
                torch_dtype=torch.bfloat16 if on_gpu else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error(
                f"Out of GPU memory loading {self.model_name}; "
                f"try a smaller model, 4-bit loading or SURVEY_DEVICE=cpu"
            )
            raise

    def _log_cuda_memory(self, stage: str) -> None:
        if self.device != DEVICE_CUDA or not torch.cuda.is_available():
            return
        logger.info(
            f"GPU memory {stage}: "
            f"{torch.cuda.memory_allocated() / 1e9:.2f}GB allocated, "
            f"{torch.cuda.memory_reserved() / 1e9:.2f}GB reserved"
        )

    # ==================== GENERATION ====================

    def is_loaded(self) -> bool:
        return self.model is not None and self.tokenizer is not None

    def _complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int],
        temperature: float
    ) -> Tuple[str, GenerationStats]:
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        started = time.perf_counter()
        budget = max_tokens or self.max_new_tokens
        encoded = self.tokenizer(self.formatter.format_messages(messages), return_tensors="pt")
        if self.device == DEVICE_CUDA:
            encoded = encoded.to(DEVICE_CUDA)
        prompt_len = encoded.input_ids.shape[1]

        sampling = temperature > 0
        try:
            with torch.no_grad():
                output = self.model.generate(
                    encoded.input_ids,
                    attention_mask=encoded.attention_mask,
                    max_new_tokens=budget,
                    do_sample=sampling,
                    temperature=temperature if sampling else None,
                    pad_token_id=self.tokenizer.pad_token_id
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"Out of GPU memory generating ({prompt_len} prompt tokens, {budget} new)")
            raise

        new_ids = output[0][prompt_len:]
        text = self.tokenizer.decode(new_ids, skip_special_tokens=True)

        stats = GenerationStats(
            prompt_tokens=prompt_len,
            completion_tokens=int((new_ids != self.tokenizer.pad_token_id).sum()),
            latency_ms=(time.perf_counter() - started) * 1000,
        )
        logger.debug(
            f"{stats.completion_tokens} new tokens for {stats.prompt_tokens} prompt tokens "
            f"in {stats.latency_ms:.0f}ms"
        )
        return text, stats

    def generate_chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
        return_diagnostics: bool = False
    ) -> Union[str, Dict[str, Any]]:
        """
        Next assistant message for a conversation.

        Args:
            messages: [{'role': 'system'|'user'|'assistant', 'content': str}, ...]
            max_tokens: Completion length (client default if None)
            temperature: 0.0 means greedy decoding
            return_diagnostics: Return {'text', 'diagnostics'} instead of text

        Raises:
            RuntimeError: If the model is not loaded
        """
        text, stats = self._complete(messages, max_tokens, temperature)
        if return_diagnostics:
            return {
                "text": text,
                "diagnostics": {**asdict(stats), "total_tokens": stats.total_tokens},
            }
        return text

    def generate_json(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.0
    ) -> str:
        """
        Greedy completion cleaned up for json.loads().

        The result may still fail to parse; decoding and classification
        belong to the output codec.
        """
        text, _ = self._complete(messages, max_tokens, temperature)
        repaired = repair_json(text)
        if repaired != text:
            logger.debug("Repaired JSON in model output")
        return repaired

    def get_model_info(self) -> Dict[str, Any]:
        info = {
            "model_name": self.model_name,
            "device": self.device,
            "quantized_4bit": self.quantized,
            "is_loaded": self.is_loaded(),
            "formatter": self.formatter.get_info(),
        }
        if self.device == DEVICE_CUDA and torch.cuda.is_available():
            info["gpu_memory_allocated_gb"] = torch.cuda.memory_allocated() / 1e9
            info["gpu_memory_reserved_gb"] = torch.cuda.memory_reserved() / 1e9
        return info
