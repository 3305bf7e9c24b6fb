# コアモジュール
# パターン抽出、ユーザー設定キャッシュ、判定エンジン、実行トラッカー、
# 公開 API（AutomationManager）を提供
