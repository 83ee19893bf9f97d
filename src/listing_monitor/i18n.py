"""
Internationalization (i18n) module for the listing monitor.

Provides translations for notification text and operator-facing CLI output
in Japanese (ja) and English (en).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"ja", "en"})
DEFAULT_LANGUAGE = "ja"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Notification message lines
    "notification.target": {
        "ja": "📍 {display_name} + {category}",
        "en": "📍 {display_name} + {category}",
    },
    "notification.link": {
        "ja": "🔗 {url}",
        "en": "🔗 {url}",
    },
    "notification.record": {
        "ja": "■{name}・{price}円",
        "en": "■{name} · ¥{price}",
    },
    "notification.overflow": {
        "ja": "...他{count}件",
        "en": "...and {count} more",
    },

    # Activity tiers
    "tier.active": {
        "ja": "活発",
        "en": "active",
    },
    "tier.moderate": {
        "ja": "中程度",
        "en": "moderate",
    },
    "tier.low-frequency": {
        "ja": "低頻度",
        "en": "low-frequency",
    },

    # Statistics summary
    "stats.header": {
        "ja": "📊 統計情報",
        "en": "📊 Statistics",
    },
    "stats.total_checks": {
        "ja": "総チェック回数: {count}",
        "en": "Total checks: {count}",
    },
    "stats.total_new_items": {
        "ja": "総新商品数: {count}",
        "en": "Total new items: {count}",
    },
    "stats.error_count": {
        "ja": "エラー回数: {count}",
        "en": "Errors: {count}",
    },
    "stats.last_new_item": {
        "ja": "最終新着: {timestamp}",
        "en": "Last new item: {timestamp}",
    },
    "stats.top_hours": {
        "ja": "活発な時間帯:",
        "en": "Busiest hours:",
    },
    "stats.hour_line": {
        "ja": "  {hour:02d}時: {count}件",
        "en": "  {hour:02d}:00: {count} items",
    },
    "stats.next_interval": {
        "ja": "次回間隔: {minutes}分 ({tier})",
        "en": "Next interval: {minutes} min ({tier})",
    },
    "stats.sleeping": {
        "ja": "休止時間帯 ({start}:00-{end}:00)",
        "en": "Sleep window ({start}:00-{end}:00)",
    },
    "stats.never": {
        "ja": "なし",
        "en": "never",
    },

    # Snapshot listing
    "snapshot.empty": {
        "ja": "保存済みスナップショットはありません",
        "en": "No snapshots stored",
    },
    "snapshot.entry": {
        "ja": "{target}: {name} ({price}円) [{fingerprint}] {observed_at}",
        "en": "{target}: {name} (¥{price}) [{fingerprint}] {observed_at}",
    },
    "snapshot.untracked": {
        "ja": "{target}: 未記録",
        "en": "{target}: not observed yet",
    },

    # CLI messages
    "cli.monitor_start": {
        "ja": "2ndstreet 監視を開始します (対象 {count} 件)",
        "en": "Starting listing monitor ({count} targets)",
    },
    "cli.monitor_stopped": {
        "ja": "監視を終了しました",
        "en": "Monitor stopped",
    },
    "cli.dry_run": {
        "ja": "ドライラン - 通知は送信されません",
        "en": "Dry run - no notifications are sent",
    },
    "cli.config_valid": {
        "ja": "設定は有効です",
        "en": "Configuration is valid",
    },
    "cli.config_invalid": {
        "ja": "設定に問題があります:",
        "en": "Configuration is invalid:",
    },
    "cli.config_written": {
        "ja": "設定ファイルを作成しました: {path}",
        "en": "Configuration written to: {path}",
    },
    "cli.config_exists": {
        "ja": "設定ファイルは既に存在します: {path} (--force で上書き)",
        "en": "Configuration file already exists: {path} (use --force to overwrite)",
    },
    "cli.config_error": {
        "ja": "設定の読み込みに失敗しました: {error}",
        "en": "Failed to load configuration: {error}",
    },
    "cli.missing_token": {
        "ja": "CHATWORK_TOKEN が未設定です。通知は失敗します",
        "en": "CHATWORK_TOKEN is not set; notifications will fail",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'notification.overflow')
        language: Language code ('ja' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('notification.overflow', 'en', count=3)
        '...and 3 more'
        >>> get_message('notification.record', 'ja', name='Canon EOS R5', price=200000)
        '■Canon EOS R5・200000円'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except (KeyError, ValueError):
            # Leave the template unformatted rather than fail a log line
            pass

    return message


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def has_translation(key: str, language: str) -> bool:
    """Check if a translation exists for a key and language."""
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return False
    return language in translations


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {
        language: get_missing_translations(language)
        for language in SUPPORTED_LANGUAGES
    }
