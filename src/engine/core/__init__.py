"""
どこで: `engine.core` サブパッケージ。
何を: レンダーユニット契約（RenderUnit/BaseUnit/UnitRegistry）とフレームスケジューラを提供。
なぜ: ハーネスの検査対象と時間駆動の基盤を構成し、上位層（render/monitor/harness）から再利用可能にするため。
"""
