import unittest

from unified_stream.capabilities import (
    CAPABILITY_KINDS,
    TokenLimit,
    classify,
    find_token_limit,
    is_embedding_model,
    is_function_calling_model,
    is_non_chat_model,
    is_reasoning_model,
    is_vision_model,
    is_web_search_model,
    rule_table,
    supported_reasoning_efforts,
    supports_reasoning_effort,
    supports_thinking_token,
    thinking_budget,
)
from unified_stream.capabilities.effort import (
    anthropic_thinking_params,
    gemini_thinking_config,
    openai_chat_reasoning_params,
    openai_responses_reasoning_params,
)
from unified_stream.capabilities.naming import ModelView, lower_base_model_name
from unified_stream.types import Model, ModelCapabilityOverride, Provider


def _model(model_id: str, provider: str = "openai", **kwargs) -> Model:
    return Model(id=model_id, provider=provider, **kwargs)


class NamingTests(unittest.TestCase):
    def test_strips_namespace_and_variant_suffix(self) -> None:
        self.assertEqual(lower_base_model_name("deepseek/DeepSeek-R1:free"), "deepseek-r1")
        self.assertEqual(lower_base_model_name("gpt-4o"), "gpt-4o")

    def test_view_uses_provider_over_model_owner(self) -> None:
        provider = Provider(id="OpenRouter", type="openai")
        view = ModelView.of(_model("openai/gpt-4o", provider="other"), provider)
        self.assertEqual(view.provider_id, "openrouter")
        self.assertEqual(view.provider_type, "openai")
        self.assertEqual(view.base_id, "gpt-4o")


class ClassifierTests(unittest.TestCase):
    def test_classifier_is_pure(self) -> None:
        models = [_model(i) for i in ("gpt-4o", "o3-mini", "text-embedding-3-small", "claude-sonnet-4-5", "qwen3-8b")]
        for model in models:
            for kind in CAPABILITY_KINDS:
                first = classify(kind, model)
                self.assertEqual(first, classify(kind, model), f"{kind} for {model.id}")

    def test_o3_mini_reasons_without_effort_parameter(self) -> None:
        model = _model("o3-mini")
        self.assertTrue(is_reasoning_model(model))
        self.assertFalse(supports_reasoning_effort(model))

    def test_gpt51_chat_is_vetoed(self) -> None:
        self.assertFalse(is_reasoning_model(_model("gpt-5.1-chat")))
        self.assertTrue(is_reasoning_model(_model("gpt-5.1")))
        self.assertEqual(rule_table("reasoning").decide(ModelView.of(_model("gpt-5.1-chat"))).name, "gpt-5-chat-variant")

    def test_override_enables_and_disables(self) -> None:
        enabled = _model("gpt-4o", capabilities=(ModelCapabilityOverride(type="reasoning", is_user_selected=True),))
        disabled = _model("gpt-4o", capabilities=(ModelCapabilityOverride(type="vision", is_user_selected=False),))
        self.assertFalse(is_reasoning_model(_model("gpt-4o")))
        self.assertTrue(is_reasoning_model(enabled))
        self.assertTrue(is_vision_model(_model("gpt-4o")))
        self.assertFalse(is_vision_model(disabled))

    def test_unset_override_falls_through(self) -> None:
        model = _model("gpt-4o", capabilities=(ModelCapabilityOverride(type="vision", is_user_selected=None),))
        self.assertTrue(is_vision_model(model))

    def test_non_chat_models_never_reason_or_call_tools(self) -> None:
        for model_id in ("text-embedding-3-small", "bge-reranker-v2-m3", "flux-1-schnell", "deepseek-r1-embed"):
            model = _model(model_id)
            self.assertTrue(is_non_chat_model(model), model_id)
            self.assertFalse(is_reasoning_model(model), model_id)
            self.assertFalse(is_function_calling_model(model), model_id)
            self.assertFalse(is_web_search_model(model), model_id)

    def test_exclusion_invariant_over_sample(self) -> None:
        ids = [
            "o1",
            "o4-mini",
            "gpt-5",
            "deepseek-r1",
            "qwq-32b",
            "claude-3-7-sonnet-20250219",
            "gemini-2.5-pro",
            "text-embedding-ada-002",
            "jina-embeddings-v3",
            "dall-e-3",
            "hunyuan-t1-latest",
        ]
        for model_id in ids:
            model = _model(model_id)
            if is_reasoning_model(model):
                for kind in ("embedding", "rerank", "text_to_image"):
                    self.assertFalse(classify(kind, model), f"{model_id} is {kind}")

    def test_embedding_denied_for_anthropic(self) -> None:
        provider = Provider(id="anthropic", type="anthropic")
        self.assertTrue(is_embedding_model(_model("voyage-3")))
        self.assertFalse(is_embedding_model(_model("voyage-3", provider="anthropic"), provider))

    def test_deepseek_thinking_token_scoped_to_provider(self) -> None:
        model = _model("deepseek-chat", provider="deepseek")
        self.assertTrue(supports_thinking_token(model, Provider(id="deepseek")))
        self.assertFalse(supports_thinking_token(model, Provider(id="acme-gateway")))

    def test_web_search_is_provider_scoped(self) -> None:
        claude = _model("claude-sonnet-4-5", provider="anthropic")
        self.assertTrue(is_web_search_model(claude, Provider(id="anthropic", type="anthropic")))
        self.assertFalse(is_web_search_model(claude, Provider(id="proxy", type="anthropic")))

    def test_doubao_matches_display_name(self) -> None:
        model = Model(id="ep-20250101-abc", name="doubao-seed-1.6", provider="doubao")
        self.assertTrue(is_reasoning_model(model))


class BudgetTests(unittest.TestCase):
    def test_token_limit_lookup(self) -> None:
        self.assertEqual(find_token_limit("qwen-plus-2025-07-14"), TokenLimit(0, 38_912))
        self.assertIsNone(find_token_limit("unknown-model"))

    def test_stop_entry_hides_broader_pattern(self) -> None:
        self.assertIsNone(find_token_limit("qwen3-max-preview"))
        self.assertEqual(find_token_limit("qwen3-8b"), TokenLimit(1024, 38_912))

    def test_thinking_budget_scales_with_effort(self) -> None:
        model = _model("qwen-plus-2025-07-14", provider="dashscope")
        self.assertEqual(thinking_budget(model, "medium"), 19_456)
        self.assertEqual(thinking_budget(model, "low"), 1_945)
        self.assertEqual(thinking_budget(model, "high", max_tokens=1000), 1000)
        self.assertIsNone(thinking_budget(_model("gpt-4o"), "high"))


class EffortTests(unittest.TestCase):
    def test_supported_efforts(self) -> None:
        self.assertEqual(supported_reasoning_efforts(_model("o3")), ("low", "medium", "high"))
        self.assertEqual(supported_reasoning_efforts(_model("gpt-5")), ("minimal", "low", "medium", "high"))
        self.assertEqual(supported_reasoning_efforts(_model("gpt-4o")), ())

    def test_openai_chat_effort(self) -> None:
        self.assertEqual(openai_chat_reasoning_params(_model("o3"), None, "high"), {"reasoning_effort": "high"})
        self.assertEqual(openai_chat_reasoning_params(_model("gpt-4o"), None, "high"), {})
        self.assertEqual(openai_chat_reasoning_params(_model("o3"), None, None), {})

    def test_openai_chat_qwen_budget(self) -> None:
        model = _model("qwen-plus-2025-07-14", provider="dashscope")
        params = openai_chat_reasoning_params(model, Provider(id="dashscope"), "medium")
        self.assertEqual(params, {"enable_thinking": True, "thinking_budget": 19_456})
        disabled = openai_chat_reasoning_params(model, Provider(id="dashscope"), "none")
        self.assertEqual(disabled, {"enable_thinking": False})

    def test_openrouter_uses_reasoning_object(self) -> None:
        params = openai_chat_reasoning_params(_model("openai/o3"), Provider(id="openrouter"), "low")
        self.assertEqual(params, {"reasoning": {"effort": "low"}})

    def test_responses_effort(self) -> None:
        self.assertEqual(
            openai_responses_reasoning_params(_model("o4-mini"), None, "medium"),
            {"reasoning": {"effort": "medium", "summary": "auto"}},
        )
        self.assertEqual(openai_responses_reasoning_params(_model("o3-mini"), None, "medium"), {})

    def test_anthropic_budget_capped_by_max_tokens(self) -> None:
        model = _model("claude-sonnet-4-20250514", provider="anthropic")
        params = anthropic_thinking_params(model, "high", 8192)
        self.assertEqual(params, {"thinking": {"type": "enabled", "budget_tokens": 6553}})
        self.assertEqual(anthropic_thinking_params(model, "none", 8192), {"thinking": {"type": "disabled"}})
        self.assertEqual(anthropic_thinking_params(_model("claude-3-5-haiku"), "high", 8192), {})

    def test_gemini_thinking_config(self) -> None:
        auto = gemini_thinking_config(_model("gemini-2.5-flash"), "auto")
        self.assertEqual(auto, {"thinkingConfig": {"thinkingBudget": -1, "includeThoughts": True}})
        off = gemini_thinking_config(_model("gemini-2.5-flash"), "none")
        self.assertEqual(off, {"thinkingConfig": {"thinkingBudget": 0}})
        level = gemini_thinking_config(_model("gemini-3-pro-preview"), "high")
        self.assertEqual(level["thinkingConfig"]["thinkingLevel"], "high")


if __name__ == "__main__":
    unittest.main()
