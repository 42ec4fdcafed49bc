"""Pure capability predicates over a Model (and optional Provider).

``classify`` resolves a capability in a fixed order:

1. an explicit user override on the model wins outright;
2. models that are embedding, rerank or text-to-image models never reason,
   call tools or search the web;
3. the capability's rule table decides (vendor special cases, family scoped
   deny rules, allow rules, then ``False``).
"""

from __future__ import annotations

from typing import get_args

from unified_stream.capabilities.naming import ModelView
from unified_stream.capabilities.rules import (
    Predicate,
    RuleTable,
    all_of,
    allow,
    any_of,
    by_name,
    deny,
    id_contains,
    id_in,
    id_matches,
    id_startswith,
    negate,
    provider_is,
    provider_type_is,
)
from unified_stream.types import CapabilityKind, Model, Provider

EMBEDDING_PATTERN = r"(?:^text-|embed|bge-|e5-|llm2vec|retrieval|uae-|gte-|jina-clip|jina-embeddings|voyage-)"
RERANK_PATTERN = r"(?:rerank|re-rank|re-ranker|re-ranking|retriever)"
TEXT_TO_IMAGE_PATTERN = (
    r"flux|diffusion|stabilityai|sd-|dall|cogview|janus|midjourney|mj-|imagen|gpt-image|seedream|kolors"
)

# Generic markers of a reasoning model, tried after every family rule.
REASONING_PATTERN = (
    r"^(?:o\d+(?:-[\w-]+)?|.*\b(?:reasoning|reasoner|thinking)\b.*|.*-[r]\d+.*|.*\bqwq(?:-[\w-]+)?\b.*"
    r"|.*\bhunyuan-t1(?:-[\w-]+)?\b.*|.*\bglm-zero-preview\b.*|.*\bgrok-(?:3-mini|4|4-fast)(?:-[\w-]+)?\b.*)$"
)

VISION_ALLOWED = (
    "llava",
    "moondream",
    "minicpm",
    r"gemini-1\.5",
    r"gemini-2\.\d",
    r"gemini-3",
    "gemini-exp",
    "gemini-flash",
    "gemini-pro",
    "claude-3",
    r"claude-(?:haiku|sonnet|opus)-4",
    "vision",
    r"glm-4(?:\.\d+)?v",
    "qwen-vl",
    "qwen2-vl",
    r"qwen2\.5-vl",
    "qwen3-vl",
    "qwen-omni",
    "qvq",
    "internvl2",
    "grok-vision-beta",
    "grok-4",
    "pixtral",
    r"gpt-4(?:-[\w-]+)",
    r"gpt-4\.1",
    r"gpt-4\.5",
    r"gpt-4o(?:-[\w-]+)?",
    r"gpt-5(?:\.\d)?",
    r"chatgpt-4o(?:-[\w-]+)?",
    r"o[134](?:-[\w-]+)?",
    r"deepseek-vl(?:[\w-]+)?",
    "kimi-latest",
    r"kimi-vl",
    "gemma-3",
    "llama-4",
    "step-1o",
    r"doubao-1[.-]5-thinking-vision-pro",
    r"doubao-seed-1[.-]6",
)
VISION_EXCLUDED = (
    r"^gpt-4-\d+-preview",
    r"^gpt-4-turbo-preview",
    r"^gpt-4-32k",
    r"^gpt-4-\d+$",
    r"^o1-mini",
    r"^o1-preview",
    r"^o3-mini",
    r"-tts",
    r"-audio",
)
VISION_PATTERN = r"\b(?:" + "|".join(VISION_ALLOWED) + r")\b"

FUNCTION_CALLING_ALLOWED = (
    r"gpt-4o",
    r"gpt-4o-mini",
    r"gpt-4",
    r"gpt-4\.\d",
    r"gpt-oss(?:-[\w-]+)",
    r"gpt-5(?:\.\d)?(?:-[\w-]+)?",
    r"o[134](?:-[\w-]+)?",
    "claude",
    "qwen",
    "qwen3",
    "hunyuan",
    "deepseek",
    r"glm-4(?:-[\w-]+)?",
    r"glm-4\.\d(?:-[\w-]+)?",
    "learnlm",
    "gemini",
    r"grok-[34](?:-[\w-]+)?",
    r"doubao-seed-1[.-]6(?:-[\w-]+)?",
    r"kimi-k2(?:-[\w-]+)?",
    r"ling-\w+(?:-[\w-]+)?",
    r"ring-\w+(?:-[\w-]+)?",
    r"minimax-m2",
    r"mistral-large",
    "magistral",
)
FUNCTION_CALLING_EXCLUDED = (
    "aqa",
    "imagen",
    r"^o1-mini",
    r"^o1-preview",
    r"gemini-1(?:\.[\w-]+)?$",
    "qwen-mt",
    r"gpt-5(?:\.\d)?-chat",
    r"glm-4\.5v",
    r"-tts",
    r"deepseek-v3\.2-speciale",
)
FUNCTION_CALLING_PATTERN = r"\b(?:" + "|".join(FUNCTION_CALLING_ALLOWED) + r")\b"

GEMINI_SEARCH_PATTERN = (
    r"gemini-(?:2(?:\.\d+)?-.*|3(?:\.\d+)?-(?:flash|pro)(?:-(?:image-)?preview)?|flash-latest|pro-latest"
    r"|flash-lite-latest)(?:-[\w-]+)*$"
)
CLAUDE_SEARCH_PATTERN = (
    r"\b(?:claude-3[-.][57]-sonnet(?:-[\w-]+)?|claude-3[-.]5-haiku(?:-[\w-]+)?"
    r"|claude-(?:haiku|sonnet|opus)-4(?:[-.][\w-]+)?)\b"
)
GEMINI_THINKING_PATTERN = (
    r"gemini-(?:2\.5.*(?:-latest)?|3(?:\.\d+)?-(?:flash|pro)(?:-preview)?|flash-latest|pro-latest"
    r"|flash-lite-latest)(?:-[\w-]+)*$"
)
GEMINI_FLASH_PATTERN = r"gemini.*-flash.*$"
DOUBAO_THINKING_PATTERN = (
    r"doubao-(?:1[.-]5-thinking-vision-pro|1[.-]5-thinking-pro-m|seed-1[.-]6(?:-flash)?)(?:-[\w-]+)*"
)
DOUBAO_THINKING_AUTO_PATTERN = r"doubao-(?:1-5-thinking-pro-m|seed-1[.-]6)(?:-lite)?(?:-\d+)?$"
DEEPSEEK_HYBRID_PATTERN = r"deepseek-v3(?:\.\d|-\d)(?:[.-]\w+)?$"

QWEN_THINKING_TOKEN_IDS = (
    "qwen-plus",
    "qwen-plus-latest",
    "qwen-plus-0428",
    "qwen-plus-2025-04-28",
    "qwen-plus-0714",
    "qwen-plus-2025-07-14",
    "qwen-plus-2025-07-28",
    "qwen-plus-2025-09-11",
    "qwen-turbo",
    "qwen-turbo-latest",
    "qwen-turbo-0428",
    "qwen-turbo-2025-04-28",
    "qwen-turbo-0715",
    "qwen-turbo-2025-07-15",
    "qwen-flash",
    "qwen-flash-2025-07-28",
)
# Providers known to honour thinking control for DeepSeek hybrid models.
DEEPSEEK_HYBRID_PROVIDERS = (
    "deepseek",
    "openrouter",
    "dashscope",
    "modelscope",
    "doubao",
    "silicon",
    "nvidia",
    "ppio",
    "hunyuan",
    "tencent-cloud-ti",
)

_is_doubao: Predicate = any_of(provider_is("doubao"), id_contains("doubao"))


# -- family predicates --------------------------------------------------------


def _gpt5_chat(view: ModelView) -> bool:
    return id_matches(r"gpt-5(?:\.\d+)?-chat")(view)


def is_gpt5_series(view: ModelView) -> bool:
    return view.base_id.startswith("gpt-5") and not is_gpt51_series(view)


def is_gpt51_series(view: ModelView) -> bool:
    return view.base_id.startswith("gpt-5.1")


def is_openai_deep_research(view: ModelView) -> bool:
    if "deep-research" not in view.base_id:
        return False
    return view.provider_id in ("openai", "azure-openai") or view.model.id.lower().startswith("openai/")


def is_gemini_thinking_token(view: ModelView) -> bool:
    if not id_matches(GEMINI_THINKING_PATTERN)(view):
        return False
    return "image" not in view.base_id and "tts" not in view.base_id


def is_gemini3(view: ModelView) -> bool:
    return id_matches(r"gemini-3(?:\.\d+)?-")(view) and "image" not in view.base_id


def is_qwen_thinking_token(view: ModelView) -> bool:
    base = view.base_id
    if "coder" in base:
        return False
    if base.startswith("qwen3"):
        return not any(marker in base for marker in ("instruct", "thinking", "qwen3-max"))
    return base in QWEN_THINKING_TOKEN_IDS


def is_qwen_always_think(view: ModelView) -> bool:
    base = view.base_id
    return (base.startswith("qwen3") or "qwen3-vl" in base) and "thinking" in base


def is_claude_reasoning(view: ModelView) -> bool:
    return id_contains(
        "claude-3-7-sonnet", "claude-3.7-sonnet", "claude-sonnet-4", "claude-opus-4", "claude-haiku-4"
    )(view)


def is_doubao_thinking_token(view: ModelView) -> bool:
    return id_matches(DOUBAO_THINKING_PATTERN)(view) or by_name(id_matches(DOUBAO_THINKING_PATTERN))(view)


def is_doubao_thinking_auto(view: ModelView) -> bool:
    if "251015" in view.base_id:
        return False
    pattern = id_matches(DOUBAO_THINKING_AUTO_PATTERN)
    return pattern(view) or by_name(pattern)(view)


def is_deepseek_hybrid(view: ModelView) -> bool:
    return (
        id_matches(DEEPSEEK_HYBRID_PATTERN)(view)
        or "deepseek-chat-v3.1" in view.base_id
        or view.base_id == "deepseek-chat"
    )


def is_hunyuan_thinking_token(view: ModelView) -> bool:
    return "hunyuan-a13b" in view.base_id


def is_zhipu_thinking_token(view: ModelView) -> bool:
    return id_contains("glm-4.5", "glm-4.6")(view)


def is_grok_reasoning_effort(view: ModelView) -> bool:
    if "grok-3-mini" in view.base_id:
        return True
    return view.provider_id == "openrouter" and "grok-4-fast" in view.base_id


def is_perplexity_reasoning_effort(view: ModelView) -> bool:
    return "sonar-deep-research" in view.base_id


# -- rule tables --------------------------------------------------------------

EMBEDDING_RULES = RuleTable(
    name="embedding",
    rules=(
        deny("anthropic-hosts-no-embeddings", any_of(provider_is("anthropic"), provider_type_is("anthropic"))),
        deny("rerank-models", id_matches(RERANK_PATTERN)),
        allow("doubao-by-name", all_of(provider_is("doubao"), by_name(id_matches(EMBEDDING_PATTERN)))),
        deny("doubao-other", provider_is("doubao")),
        allow("embedding-pattern", id_matches(EMBEDDING_PATTERN)),
    ),
)

RERANK_RULES = RuleTable(
    name="rerank",
    rules=(allow("rerank-pattern", id_matches(RERANK_PATTERN)),),
)

TEXT_TO_IMAGE_RULES = RuleTable(
    name="text_to_image",
    rules=(allow("text-to-image-pattern", id_matches(TEXT_TO_IMAGE_PATTERN)),),
)

VISION_RULES = RuleTable(
    name="vision",
    rules=(
        allow("doubao-by-name", all_of(provider_is("doubao"), by_name(id_matches(VISION_PATTERN)))),
        deny("doubao-other", provider_is("doubao")),
        *(deny(f"excluded:{pattern}", id_matches(pattern)) for pattern in VISION_EXCLUDED),
        allow("vision-pattern", id_matches(VISION_PATTERN)),
    ),
)

REASONING_RULES = RuleTable(
    name="reasoning",
    rules=(
        allow(
            "doubao",
            all_of(
                _is_doubao,
                any_of(
                    id_matches(REASONING_PATTERN),
                    by_name(id_matches(REASONING_PATTERN)),
                    is_doubao_thinking_token,
                    is_deepseek_hybrid,
                    by_name(is_deepseek_hybrid),
                ),
            ),
        ),
        deny("doubao-other", _is_doubao),
        deny("non-reasoning-variant", id_contains("non-reasoning")),
        deny("gpt-5-chat-variant", _gpt5_chat),
        deny("gemini-image-or-tts", all_of(id_startswith("gemini"), id_contains("image", "tts"))),
        allow("openai-o-series", id_matches(r"^o\d+(?:-[\w-]+)?$")),
        allow("openai-gpt-5", id_startswith("gpt-5")),
        allow("openai-gpt-oss", id_contains("gpt-oss")),
        allow("openai-deep-research", id_contains("deep-research")),
        allow("claude", is_claude_reasoning),
        allow("gemini-thinking", all_of(id_startswith("gemini"), id_contains("thinking"))),
        allow("gemini-thinking-token", is_gemini_thinking_token),
        allow("qwen3-thinking", all_of(id_startswith("qwen3"), id_contains("thinking"))),
        allow("qwen-thinking-token", is_qwen_thinking_token),
        allow("qwen-qwq-qvq", id_contains("qwq", "qvq")),
        allow("grok", any_of(is_grok_reasoning_effort, id_contains("grok-4"))),
        allow("hunyuan", any_of(is_hunyuan_thinking_token, id_contains("hunyuan-t1"))),
        allow("perplexity", any_of(is_perplexity_reasoning_effort, id_contains("reasoning"))),
        allow("zhipu", any_of(is_zhipu_thinking_token, id_contains("glm-z1"))),
        allow("step", id_contains("step-3", "step-r1-v-mini")),
        allow("deepseek-hybrid", is_deepseek_hybrid),
        allow("ling", id_contains("ring-1t", "ring-mini", "ring-flash")),
        allow("minimax", id_contains("minimax-m1", "minimax-m2")),
        allow("misc-families", id_contains("magistral", "pangu-pro-moe", "seed-oss")),
        allow("reasoning-pattern", id_matches(REASONING_PATTERN)),
    ),
)

FUNCTION_CALLING_RULES = RuleTable(
    name="function_calling",
    rules=(
        allow(
            "doubao",
            all_of(
                _is_doubao,
                any_of(id_matches(FUNCTION_CALLING_PATTERN), by_name(id_matches(FUNCTION_CALLING_PATTERN))),
            ),
        ),
        deny("doubao-other", _is_doubao),
        *(deny(f"excluded:{pattern}", id_matches(pattern)) for pattern in FUNCTION_CALLING_EXCLUDED),
        allow("function-calling-pattern", id_matches(FUNCTION_CALLING_PATTERN)),
    ),
)


def is_openai_web_search(view: ModelView) -> bool:
    base = view.base_id
    if "gpt-4o-search-preview" in base or "gpt-4o-mini-search-preview" in base:
        return True
    if base.startswith("gpt-4.1"):
        return "gpt-4.1-nano" not in base
    if base.startswith("gpt-4o"):
        return "gpt-4o-image" not in base
    if base.startswith("gpt-5"):
        return not _gpt5_chat(view)
    return base.startswith(("o3", "o4"))


WEB_SEARCH_RULES = RuleTable(
    name="web_search",
    rules=(
        allow(
            "anthropic-first-party",
            all_of(provider_type_is("anthropic"), provider_is("anthropic"), id_matches(CLAUDE_SEARCH_PATTERN)),
        ),
        deny("anthropic-other", provider_type_is("anthropic")),
        allow("perplexity-sonar", all_of(provider_is("perplexity"), id_contains("sonar"))),
        allow("openrouter", provider_is("openrouter")),
        allow("hunyuan", all_of(provider_is("hunyuan"), id_startswith("hunyuan"), negate(id_in(["hunyuan-lite"])))),
        allow("zhipu", all_of(provider_is("zhipu"), id_startswith("glm-4-"))),
        allow(
            "dashscope",
            all_of(provider_is("dashscope"), id_startswith("qwen-turbo", "qwen-max", "qwen-plus", "qwen-flash")),
        ),
        allow("grok", all_of(provider_is("grok"), id_startswith("grok"))),
        deny("gemini-2-image-preview", id_matches(r"gemini-2(?:\.\d+)?-.*image-preview")),
        allow(
            "gemini",
            all_of(provider_type_is("gemini", "vertexai", "openai", "openai-response"), id_matches(GEMINI_SEARCH_PATTERN)),
        ),
        allow("openai", all_of(provider_type_is("openai", "openai-response"), is_openai_web_search)),
    ),
)

IMAGE_GENERATION_RULES = RuleTable(
    name="image_generation",
    rules=(
        deny("gpt-5-chat-variant", _gpt5_chat),
        allow(
            "dedicated-image-models",
            id_matches(
                r"^(?:gemini-2\.0-flash-exp(?:-image-generation)?|gemini-2\.0-flash-preview-image-generation"
                r"|gemini-2\.5-flash-image(?:-preview)?|gemini-3(?:\.\d+)?-pro-image(?:-preview)?|grok-2-image(?:-[\w-]+)?"
                r"|gpt-image-1(?:-[\w-]+)?)$"
            ),
        ),
        allow(
            "openai-responses-image-tool",
            all_of(provider_type_is("openai-response"), id_matches(r"^(?:gpt-4o|gpt-4\.1|gpt-5|o3)(?:[.-][\w-]+)?$")),
        ),
    ),
)

_TABLES: dict[str, RuleTable] = {
    "embedding": EMBEDDING_RULES,
    "rerank": RERANK_RULES,
    "vision": VISION_RULES,
    "reasoning": REASONING_RULES,
    "function_calling": FUNCTION_CALLING_RULES,
    "web_search": WEB_SEARCH_RULES,
    "text_to_image": TEXT_TO_IMAGE_RULES,
    "image_generation": IMAGE_GENERATION_RULES,
}

# Capabilities that only make sense for chat models.
_CHAT_ONLY_KINDS = frozenset({"reasoning", "function_calling", "web_search"})
_NON_CHAT_KINDS = ("embedding", "rerank", "text_to_image")

CAPABILITY_KINDS: tuple[str, ...] = get_args(CapabilityKind)


def rule_table(kind: CapabilityKind) -> RuleTable:
    return _TABLES[kind]


def classify(kind: CapabilityKind, model: Model, provider: Provider | None = None) -> bool:
    """Decide whether ``model`` supports capability ``kind``."""
    override = model.user_override(kind)
    if override is not None:
        return override
    if kind in _CHAT_ONLY_KINDS and is_non_chat_model(model, provider):
        return False
    return _TABLES[kind].evaluate(ModelView.of(model, provider))


def is_non_chat_model(model: Model, provider: Provider | None = None) -> bool:
    return any(classify(kind, model, provider) for kind in _NON_CHAT_KINDS)


def is_embedding_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("embedding", model, provider)


def is_rerank_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("rerank", model, provider)


def is_vision_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("vision", model, provider)


def is_reasoning_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("reasoning", model, provider)


def is_function_calling_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("function_calling", model, provider)


def is_web_search_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("web_search", model, provider)


def is_text_to_image_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("text_to_image", model, provider)


def is_image_generation_model(model: Model, provider: Provider | None = None) -> bool:
    return classify("image_generation", model, provider)


SUPPORTED_REASONING_EFFORT_RULES = RuleTable(
    name="reasoning_effort",
    rules=(
        deny("o-series-without-effort", id_matches(r"^(?:o1-mini|o1-preview|o3-mini)(?:-[\w-]+)?$")),
        deny("gpt-5-chat-variant", _gpt5_chat),
        allow("openai-o-series", id_matches(r"^o\d+(?:-[\w-]+)?$")),
        allow("openai-gpt-5", id_startswith("gpt-5")),
        allow("openai-gpt-oss", id_contains("gpt-oss")),
        allow("openai-deep-research", is_openai_deep_research),
        allow("grok", is_grok_reasoning_effort),
        allow("perplexity", is_perplexity_reasoning_effort),
    ),
)


def supports_reasoning_effort(model: Model, provider: Provider | None = None) -> bool:
    """Whether the model accepts an explicit ``reasoning_effort`` style parameter."""
    if not is_reasoning_model(model, provider):
        return False
    return SUPPORTED_REASONING_EFFORT_RULES.evaluate(ModelView.of(model, provider))


def _supports_thinking_token(view: ModelView) -> bool:
    if is_deepseek_hybrid(view):
        return view.provider_id in DEEPSEEK_HYBRID_PROVIDERS
    return (
        is_gemini_thinking_token(view)
        or is_qwen_thinking_token(view)
        or is_claude_reasoning(view)
        or is_doubao_thinking_token(view)
        or is_hunyuan_thinking_token(view)
        or is_zhipu_thinking_token(view)
    )


def supports_thinking_token(model: Model, provider: Provider | None = None) -> bool:
    """Whether thinking can be toggled or budgeted, not necessarily via reasoning_effort."""
    view = ModelView.of(model, provider)
    return _supports_thinking_token(view) or by_name(_supports_thinking_token)(view)
