"""按用途保存模型覆盖，并为一次请求解析出实际使用的模型。

覆盖保存在内存中，构造时从 PreferenceStore 读入，每次 set_model 立即写回（不做批量）。
整个会话只构造一个实例，由 AiService 持有引用。
"""

from typing import Dict, Optional, Union

from forge_core.domain.exceptions import BusinessError, ValidationError
from forge_core.domain.models import ModelDescriptor, ModelSelector, Purpose
from forge_core.domain.preferences import MODEL_OVERRIDE_PREFIX, PreferenceStore
from forge_core.infrastructure.logging.logger import logger
from forge_core.providers.base import ProviderAdapter


def _coerce_purpose(purpose: Union[Purpose, str]) -> Purpose:
    try:
        return Purpose(purpose)
    except ValueError:
        raise ValidationError(code="INVALID_PURPOSE", message=f"Unknown model purpose: {purpose!r}")


class ModelAssignmentStore:
    def __init__(self, preferences: PreferenceStore):
        self._preferences = preferences
        self._overrides: Dict[str, str] = {}
        for purpose in Purpose:
            saved = self._preferences.get(f"{MODEL_OVERRIDE_PREFIX}{purpose.value}", "")
            if isinstance(saved, str) and saved.strip():
                self._overrides[purpose.value] = saved.strip()

    def set_model(self, purpose: Union[Purpose, str], model_id: Optional[str]) -> None:
        """设置某个用途的模型；传空字符串表示清除覆盖，恢复默认。"""

        key = _coerce_purpose(purpose).value
        model_id = (model_id or "").strip()
        # 先落盘，写入失败时内存中的覆盖保持不变
        self._preferences.set(f"{MODEL_OVERRIDE_PREFIX}{key}", model_id or None)
        if model_id:
            self._overrides[key] = model_id
            logger.info("Model override set", extra={"extra": {"purpose": key, "model": model_id}})
        else:
            self._overrides.pop(key, None)
            logger.info("Model override reset to default", extra={"extra": {"purpose": key}})

    def get_model_assignments(self) -> Dict[str, str]:
        return dict(self._overrides)

    def resolve(self, purpose: Union[Purpose, str], adapter: ProviderAdapter) -> Optional[ModelDescriptor]:
        """先尝试用途覆盖，再走该 Provider 自己的默认回退链。

        覆盖必须出现在当前 Provider 的模型中，否则忽略；
        不会从另一个 Provider 借用模型。选择过程中的 Provider 错误记日志并视为无模型。
        """

        key = _coerce_purpose(purpose).value
        override_id = self._overrides.get(key)
        try:
            if override_id:
                model = adapter.select_model(ModelSelector(id=override_id))
                if model is not None:
                    logger.info(
                        "Using override model",
                        extra={"extra": {"purpose": key, "model": model.id, "provider": adapter.kind.value}},
                    )
                    return model
                logger.info(
                    "Override model not found, falling back",
                    extra={"extra": {"purpose": key, "model": override_id, "provider": adapter.kind.value}},
                )
            return adapter.default_model()
        except BusinessError as e:
            logger.error(
                "Failed to select model",
                extra={"extra": {"purpose": key, "provider": adapter.kind.value, "error": e.message}},
            )
            return None
