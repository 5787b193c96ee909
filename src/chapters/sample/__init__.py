"""サンプルチャプター（CLI デモと結合テスト用の 3 ユニット）。"""
