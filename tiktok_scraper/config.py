from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    scraper_api_token: str = ""
    scraper_env: str = "development"  # production closes the browser on shutdown
    scraper_log_json: bool = False
    scraper_log_level: str = "INFO"

    scraper_headless: bool = False
    scraper_keep_browser_open: bool = False
    scraper_chrome_user_data_dir: str = ".chrome-profile"
    scraper_base_url: str = "https://www.tiktok.com"
    scraper_selectors_file: str = ""

    scraper_cache_ttl_ms: int = 0  # 0 = no TTL
    scraper_cache_max_entries: int = 200

    scraper_oembed_url: str = "https://www.tiktok.com/oembed"
    scraper_http_timeout_s: float = 10.0

    scraper_next_video_timeout_s: float = 12.0
    scraper_next_video_poll_window_s: float = 2.5
    scraper_first_video_wait_s: float = 8.0
    scraper_video_pause_s: float = 0.6

    scraper_comment_limit: int = 20
    scraper_comment_timeout_s: float = 12.0
    scraper_comment_settle_ms: int = 350
    scraper_comment_stagnation_escape: bool = True

    scraper_captcha_mode: str = "console"  # console | signal | fail
    scraper_captcha_wait_timeout_s: float = 0.0  # 0 = wait until resumed

    @property
    def is_production(self) -> bool:
        return self.scraper_env.strip().lower() == "production"


settings = Settings()
