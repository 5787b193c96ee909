"""
どこで: `chapters` パッケージ。
何を: 検証対象となるチャプター（記述子列 `config` + ユニットファクトリ `animations`）の置き場。
なぜ: `harness.chapter.ModuleChapterProvider` がパッケージ名だけで解決できるようにするため。
"""
