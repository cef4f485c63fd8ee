"""Tests for document loading and the ingest pipeline."""
from unittest.mock import AsyncMock, Mock

import pytest

from docchat.errors import EmptyCorpus, MalformedResponse, UnreachableService
from docchat.rag.chunker import normalize_text
from docchat.rag.embedder import Embedder, EmbeddingCache
from docchat.rag.ingest import IngestPipeline, source_id
from docchat.rag.loaders import discover_documents, extract_text, strip_frontmatter
from docchat.rag.records import vector_id
from docchat.rag.store import IndexStore


def make_pdf(text: str) -> bytes:
    """Single-page PDF showing `text` in Helvetica."""
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_offset,
    )
    return bytes(out)


@pytest.fixture
def docs_dir(tmp_path, monkeypatch):
    """Working directory with a docs/ tree; source ids are relative to it."""
    monkeypatch.chdir(tmp_path)
    root = tmp_path / "docs"
    (root / "guides").mkdir(parents=True)
    (root / "intro.txt").write_text("Local retrieval keeps documents private.", encoding="utf-8")
    (root / "guides" / "setup.md").write_text(
        "---\ntitle: Setup\ntags: [ollama]\n---\n# Setup\n\nInstall   Ollama\nand pull the models.",
        encoding="utf-8",
    )
    (root / "data.csv").write_text("a,b,c", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG")
    return root


@pytest.fixture
def length_client():
    """Embeds text as [len(text), 1.0]."""
    client = Mock()
    client.embed = AsyncMock(side_effect=lambda text, model=None: [float(len(text)), 1.0])
    return client


def make_pipeline(docs_dir, client, store=None, **kwargs):
    embedder = Embedder(client=client, model="nomic-embed-text", cache=EmbeddingCache())
    return IngestPipeline(
        docs_dir=docs_dir,
        store=store or IndexStore(docs_dir.parent / "data" / "local-index.json"),
        embedder=embedder,
        **kwargs,
    )


class TestLoaders:
    def test_discovery_is_recursive_sorted_and_filtered(self, docs_dir):
        found = discover_documents(docs_dir)

        assert [p.relative_to(docs_dir).as_posix() for p in found] == [
            "guides/setup.md",
            "intro.txt",
        ]

    def test_discovery_of_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            discover_documents(tmp_path / "nope")

    def test_markdown_frontmatter_stripped(self, docs_dir):
        text = extract_text(docs_dir / "guides" / "setup.md")

        assert "title:" not in text
        assert text.startswith("# Setup")

    def test_frontmatter_only_at_start(self):
        body = "Intro\n---\nnot: frontmatter\n---\n"

        assert strip_frontmatter(body) == body

    def test_unsupported_type(self, docs_dir):
        with pytest.raises(ValueError):
            extract_text(docs_dir / "data.csv")

    def test_pdf_text_extracted(self, tmp_path):
        pdf = tmp_path / "manual.pdf"
        pdf.write_bytes(make_pdf("Ollama runs models locally"))

        assert normalize_text(extract_text(pdf)) == "Ollama runs models locally"


class TestIngestPipeline:
    @pytest.mark.asyncio
    async def test_builds_and_saves_index(self, docs_dir, length_client):
        pipeline = make_pipeline(docs_dir, length_client, chunk_size=20, chunk_overlap=5)

        stats = await pipeline.ingest_all()
        index = pipeline.store.load()

        assert stats["files_processed"] == 2
        assert stats["files_failed"] == 0
        assert stats["chunks_created"] == len(index.items)
        assert stats["embeddings_generated"] == len(index.items)
        assert index.embedding_model == "nomic-embed-text"
        assert index.dimension == 2

        sources = [item.metadata.source for item in index.items]
        assert sources == sorted(sources)
        assert set(sources) == {"docs/guides/setup.md", "docs/intro.txt"}

        for item in index.items:
            assert item.id == vector_id(item.metadata.source, item.metadata.chunk)
            assert item.embedding == [float(len(item.metadata.text)), 1.0]
            assert len(item.metadata.text) <= 20

    @pytest.mark.asyncio
    async def test_chunks_are_normalized_text(self, docs_dir, length_client):
        pipeline = make_pipeline(docs_dir, length_client, chunk_size=1000, chunk_overlap=200)

        await pipeline.ingest_all()
        index = pipeline.store.load()

        texts = {item.metadata.source: item.metadata.text for item in index.items}
        assert texts["docs/guides/setup.md"] == "# Setup Install Ollama and pull the models."

    @pytest.mark.asyncio
    async def test_progress_callback(self, docs_dir, length_client):
        calls = []
        pipeline = make_pipeline(docs_dir, length_client)

        await pipeline.ingest_all(progress_callback=lambda c, t, p: calls.append((c, t, p.name)))

        assert calls == [(1, 2, "setup.md"), (2, 2, "intro.txt")]

    @pytest.mark.asyncio
    async def test_empty_directory_is_empty_corpus(self, tmp_path, length_client):
        docs = tmp_path / "docs"
        docs.mkdir()
        pipeline = make_pipeline(docs, length_client)

        with pytest.raises(EmptyCorpus):
            await pipeline.ingest_all()

        assert not pipeline.store.exists()

    @pytest.mark.asyncio
    async def test_missing_directory_is_created(self, tmp_path, length_client):
        docs = tmp_path / "docs"
        pipeline = make_pipeline(docs, length_client)

        with pytest.raises(EmptyCorpus):
            await pipeline.ingest_all()

        assert docs.is_dir()

    @pytest.mark.asyncio
    async def test_blank_documents_are_empty_corpus(self, tmp_path, length_client):
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "blank.txt").write_text("  \n\n  ", encoding="utf-8")
        pipeline = make_pipeline(docs, length_client)

        with pytest.raises(EmptyCorpus):
            await pipeline.ingest_all()

    @pytest.mark.asyncio
    async def test_unreadable_pdf_is_counted_and_skipped(self, docs_dir, length_client):
        (docs_dir / "broken.pdf").write_bytes(b"this is not a pdf")
        pipeline = make_pipeline(docs_dir, length_client)

        stats = await pipeline.ingest_all()

        assert stats["files_failed"] == 1
        assert stats["files_processed"] == 2
        assert {i.metadata.source for i in pipeline.store.load().items} == {
            "docs/guides/setup.md",
            "docs/intro.txt",
        }

    @pytest.mark.asyncio
    async def test_pdf_documents_are_indexed(self, docs_dir, length_client):
        (docs_dir / "manual.pdf").write_bytes(make_pdf("Ollama runs models locally"))
        pipeline = make_pipeline(docs_dir, length_client)

        stats = await pipeline.ingest_all()
        pdf_items = [
            item
            for item in pipeline.store.load().items
            if item.metadata.source.endswith(".pdf")
        ]

        assert stats["files_processed"] == 3
        assert stats["files_failed"] == 0
        assert [(i.metadata.source, i.metadata.chunk) for i in pdf_items] == [
            ("docs/manual.pdf", 0)
        ]
        assert pdf_items[0].metadata.text == "Ollama runs models locally"

    @pytest.mark.asyncio
    async def test_embedding_failure_aborts_and_keeps_old_index(
        self, docs_dir, length_client, scenario_index
    ):
        store = IndexStore(docs_dir.parent / "data" / "local-index.json")
        store.save(scenario_index)
        length_client.embed.side_effect = UnreachableService("http://127.0.0.1:11434")
        pipeline = make_pipeline(docs_dir, length_client, store=store)

        with pytest.raises(UnreachableService):
            await pipeline.ingest_all()

        assert store.load() == scenario_index

    @pytest.mark.asyncio
    async def test_mixed_dimension_embeddings_keep_old_index(
        self, docs_dir, length_client, scenario_index
    ):
        store = IndexStore(docs_dir.parent / "data" / "local-index.json")
        store.save(scenario_index)
        length_client.embed.side_effect = lambda text, model=None: (
            [1.0, 0.0] if "Setup" in text else [1.0, 0.0, 0.0]
        )
        pipeline = make_pipeline(docs_dir, length_client, store=store)

        with pytest.raises(MalformedResponse):
            await pipeline.ingest_all()

        assert store.load() == scenario_index

    @pytest.mark.asyncio
    async def test_rerun_rebuilds_with_stable_ids(self, docs_dir, length_client):
        pipeline = make_pipeline(docs_dir, length_client, chunk_size=20, chunk_overlap=5)

        await pipeline.ingest_all()
        first = pipeline.store.load()
        await pipeline.ingest_all()
        second = pipeline.store.load()

        assert [i.id for i in first.items] == [i.id for i in second.items]
        assert pipeline.stats["chunks_created"] == len(second.items)


def test_source_id_outside_working_directory(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    outside = tmp_path / "elsewhere" / "doc.pdf"

    assert source_id(outside) == outside.resolve().as_posix()
