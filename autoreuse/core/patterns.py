"""
パターン抽出ユーティリティ: 記録結果からマッチング用メタ情報を導出する

副作用のない関数のみで構成する。

  - extract_parameters(): テンプレートスクリプトからパラメータ名を出現順に抽出
  - extract_domain(): ウェブサイト文字列からホスト名を取り出す（失敗時は原文）
  - extract_website(): 記録完了通知から適用対象サイトを決定
  - generate_url_pattern(): "https://{domain}/*" 形式の URL パターン生成
  - wildcard_match(): `*` を任意部分文字列とみなした完全一致判定
  - fill_template(): プレースホルダーをパラメータ値で置換
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from ..models.events import AutomationImplementedEvent


# ---------------------------------------------------------------------------
# プレースホルダーパターン
# ---------------------------------------------------------------------------

# ${payload.parameters.NAME} にマッチする正規表現
_PARAM_PATTERN = re.compile(r"\$\{payload\.parameters\.(\w+)\}")

UNKNOWN_WEBSITE = "unknown"
"""サイトを特定できなかった場合の website 値。"""


# ---------------------------------------------------------------------------
# パラメータ抽出
# ---------------------------------------------------------------------------

def extract_parameters(templated_script: str) -> list[str]:
    """テンプレート内で参照されるパラメータ名を初出順・重複なしで返す。

    Args:
        templated_script: ${payload.parameters.NAME} を含むスクリプト

    Returns:
        パラメータ名のリスト（ソートしない）
    """
    names: list[str] = []
    for match in _PARAM_PATTERN.finditer(templated_script):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def fill_template(templated_script: str, parameters: Mapping[str, Any]) -> str:
    """プレースホルダーをパラメータ値で置換する。

    Raises:
        ValueError: テンプレートが参照するパラメータが未指定の場合
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in parameters:
            raise ValueError(f"パラメータが指定されていません: {name}")
        return str(parameters[name])

    return _PARAM_PATTERN.sub(_replace, templated_script)


# ---------------------------------------------------------------------------
# ドメイン・URL
# ---------------------------------------------------------------------------

def _hostname(url: str) -> str | None:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


def extract_domain(website: str) -> str:
    """ウェブサイト文字列からホスト名を取り出す。

    スキームがなければ https:// を補って解析する。
    解析に失敗した場合はエラーにせず、入力をそのまま返す。
    """
    url = website if "://" in website else f"https://{website}"
    host = _hostname(url)
    return host if host is not None else website


def extract_website(event: AutomationImplementedEvent) -> str:
    """記録完了通知から適用対象サイトを決定する。

    優先順位: event.website > metadata.websiteUrl のホスト名 > "unknown"
    """
    if event.website:
        return event.website
    if event.metadata.websiteUrl:
        host = _hostname(event.metadata.websiteUrl)
        if host is not None:
            return host
    return UNKNOWN_WEBSITE


def generate_url_pattern(domain: str) -> str:
    return f"https://{domain}/*"


# ---------------------------------------------------------------------------
# ワイルドカード
# ---------------------------------------------------------------------------

def wildcard_match(pattern: str, value: str) -> bool:
    """`*` を「任意の部分文字列」とみなして value 全体と照合する。

    `*` 以外の文字はリテラルとして扱う。
    """
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, value, flags=re.DOTALL) is not None
