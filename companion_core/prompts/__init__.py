"""系统指令加载工具。

内置默认指令按语言(locale) 存放在 prompts/<locale>/<kind>.md，
文本中的 {persona} 会替换为配置的角色名。用户可以通过
FileInstructionProvider.save_instruction 覆盖任意一种指令，
覆盖内容为空白时回落到内置默认值。
"""

from pathlib import Path
from typing import Optional

from companion_core.config.settings import settings
from companion_core.domain.collaborators import InstructionKind
from companion_core.domain.exceptions import StorageError


PROMPTS_DIR = Path(__file__).resolve().parent


def load_default_instruction(kind: InstructionKind, persona: Optional[str] = None, locale: str = "en") -> str:
    """读取内置默认指令并填入角色名。"""

    fname = PROMPTS_DIR / locale / f"{kind.value}.md"
    text = fname.read_text(encoding="utf-8").strip()
    return text.replace("{persona}", persona or settings.persona_name)


class FileInstructionProvider:
    """把用户自定义指令保存在 <root>/prompts/<kind>.txt。"""

    def __init__(self, root: str | Path | None = None, persona: Optional[str] = None, locale: str = "en"):
        self._dir = Path(root or settings.storage_root).resolve() / "prompts"
        self._persona = persona or settings.persona_name
        self._locale = locale

    def get_instruction(self, kind: InstructionKind) -> str:
        path = self._dir / f"{kind.value}.txt"
        if path.exists():
            try:
                text = path.read_text(encoding="utf-8").strip()
            except OSError as e:
                raise StorageError(code="PROMPT_READ_ERROR", message=str(e))
            if text:
                return text
        return load_default_instruction(kind, self._persona, self._locale)

    def save_instruction(self, kind: InstructionKind, text: str) -> None:
        path = self._dir / f"{kind.value}.txt"
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise StorageError(code="PROMPT_WRITE_ERROR", message=str(e))
