"""
Mufessir Importers Package

Offline jobs that fill the verse, scholar and tafsir tables:
- sql_dump: legacy MySQL dump import
- quran: Arabic text and translation from JSON
- embeddings: tafsir embedding backfill
- sample_data: a small fixture set for fresh databases
"""
