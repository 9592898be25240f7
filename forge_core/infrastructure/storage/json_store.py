import json
import os
import threading
from pathlib import Path
from typing import Any, Dict
from uuid import uuid4

from forge_core.config.settings import settings
from forge_core.domain.exceptions import BusinessError


class JsonPreferenceStore:
    """把用户偏好保存在单个 JSON 文件中（PreferenceStore 的默认实现）。

    每次 set 都整体重写文件，先写临时文件再 os.replace，避免半写状态。
    """

    def __init__(self, root: str | Path | None = None, filename: str = "preferences.json"):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / filename
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = dict(self._data)
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            self._write(data)
            self._data = data

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(data, dict):
            raise BusinessError(code="STORE_READ_ERROR", message=f"{self._path} is not a JSON object")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self._root / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))
