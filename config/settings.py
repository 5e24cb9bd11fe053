"""
Configuração do servidor (proxies Gemini + história)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Credencial do Gemini (lida só pelos proxies)
    GEMINI_API_KEY: str = ""

    # Modelos
    GEMINI_TEXT_MODEL: str = "gemini-2.5-flash"
    GEMINI_IMAGE_MODEL: str = "imagen-4.0-generate-001"

    # Endpoints upstream ({model} é substituído pelo modelo do corpo)
    GEMINI_TEXT_URL: str = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    GEMINI_IMAGE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models/{model}:predict"

    # Geração
    STORY_TEMPERATURE: float = 0.8
    IMAGE_ASPECT_RATIO: str = "4:3"
    IMAGE_MIME_TYPE: str = "image/jpeg"

    # Timeout do cliente HTTP (segundos)
    UPSTREAM_TIMEOUT: float = 60.0

    # Sessões em memória
    MAX_SESSIONS: int = 1000
    SESSION_TTL: int = 3600  # 1 hora de inatividade

    LOG_LEVEL: str = "INFO"

    def is_configured(self) -> bool:
        """Credencial presente?"""
        return bool(self.GEMINI_API_KEY)

    def validate_settings(self) -> list:
        """Validação de configuração, devolve avisos"""
        warnings = []

        if not self.GEMINI_API_KEY:
            warnings.append("GEMINI_API_KEY não configurada; os proxies vão responder 500.")

        if not 0.0 <= self.STORY_TEMPERATURE <= 2.0:
            warnings.append(f"STORY_TEMPERATURE fora do intervalo: {self.STORY_TEMPERATURE}")

        if "{model}" not in self.GEMINI_TEXT_URL:
            warnings.append("GEMINI_TEXT_URL sem {model}; o modelo do corpo será ignorado.")

        return warnings


_settings = None


def get_settings() -> Settings:
    """Instância única de Settings"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
