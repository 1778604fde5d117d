from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Core
    ENVIRONMENT: str = Field(default="production")
    FIRESTORE_PROJECT_ID: str = Field(default="")
    FIREBASE_PROJECT_ID: str = Field(default="")  # empty -> ADC default project

    # Operator auth (Cloud Scheduler / Eventarc OIDC tokens)
    OPERATOR_AUTH_AUDIENCE: str = Field(default="")
    OPERATOR_INVOKER_SUBS: str = Field(default="")  # comma-separated
    OPERATOR_INVOKER_EMAILS: str = Field(default="")  # comma-separated

    # Razorpay
    RAZORPAY_KEY_ID: str = Field(default="")
    RAZORPAY_KEY_SECRET: str = Field(default="")  # also signs checkout payment callbacks
    RAZORPAY_WEBHOOK_SECRET: str = Field(default="")  # the "Secret" typed in the Razorpay dashboard
    RAZORPAY_PLAN_MONTHLY: str = Field(default="")
    RAZORPAY_PLAN_YEARLY: str = Field(default="")
    # Plans must be in the same mode (test/live) as the keys.
    RAZORPAY_TOTAL_COUNT_MONTHLY: int = Field(default=1200)
    RAZORPAY_TOTAL_COUNT_YEARLY: int = Field(default=100)
    PLAN_LABEL_MONTHLY: str = Field(default="monthly_499")
    PLAN_LABEL_YEARLY: str = Field(default="yearly_5499")

    # Push (FCM)
    CHAT_NOTIFICATION_TITLE: str = Field(default="✅ Reply by Dr.Kanhaiya for you")
    CHAT_PREVIEW_MAX_CHARS: int = Field(default=160)
    CHAT_SENDER_ROLE: str = Field(default="assistant")
    ANDROID_CHANNEL_ID: str = Field(default="chat_channel")

    # Daily tips
    TIP_TOTAL_DAYS: int = Field(default=30)
    TIP_TOPIC: str = Field(default="daily_tips")
    TIP_ANDROID_CHANNEL_ID: str = Field(default="tips_channel")

    # Generative text
    GEMINI_API_KEY: str = Field(default="")
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash")
    GEMINI_API_BASE: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    GEMINI_TIMEOUT_SEC: float = Field(default=60.0)
    AI_MAX_PROMPT_CHARS: int = Field(default=8000)
    AI_MAX_OUTPUT_TOKENS_CAP: int = Field(default=2048)

    def plan_id_for(self, kind: str) -> str:
        return self.RAZORPAY_PLAN_YEARLY if kind == "yearly" else self.RAZORPAY_PLAN_MONTHLY

    def total_count_for(self, kind: str) -> int:
        return self.RAZORPAY_TOTAL_COUNT_YEARLY if kind == "yearly" else self.RAZORPAY_TOTAL_COUNT_MONTHLY

    def plan_label_for(self, kind: str) -> str:
        return self.PLAN_LABEL_YEARLY if kind == "yearly" else self.PLAN_LABEL_MONTHLY


settings = Settings()
