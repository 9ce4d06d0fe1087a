"""
例外クラス

セグメンテーション実行中に送出される例外を定義します。

【方針】
- 設定の不備はシミュレーション開始前に InvalidConfigurationError として送出
- 行き詰まったアリ（Stuck）は例外ではなく、世代ごとにカウントして破棄
- ソフトタイムアウトによる再起動は制御イベントであり、例外ではない
"""


class SegmentationError(Exception):
    """パッケージ共通の基底例外"""


class InvalidConfigurationError(SegmentationError, ValueError):
    """
    設定値が不正な場合の例外（致命的）

    ワーカー数が0以下、画像サイズが縮退している、揮発率や付加重みが範囲外、など。
    """


class EmptyParetoFrontError(SegmentationError, RuntimeError):
    """
    大域評価を1回以上実行したにもかかわらずアーカイブが空の場合の例外

    挿入規則上、評価済みの解が1つでもあればアーカイブは空にならないため、
    これはロジックの欠陥を示します。
    """
