"""Tests for image source classification, URL resolution and batch resolution."""

import pytest

from catalog.core.images import (
    ImageResolutionFailure,
    ImageResolver,
    ResolvedImages,
    classify_source,
    resolve_upload_path,
    resolve_url,
)
from catalog.models.models import BlobImageSource, ExternalImageSource, PathImageSource
from conftest import make_image, make_row


class TestUrlResolution:
    @pytest.mark.parametrize("raw", ["photo.jpg", "uploads/photo.jpg", "/uploads/photo.jpg"])
    def test_paths_collapse_to_single_uploads_prefix(self, raw):
        assert resolve_url(classify_source(raw), 7) == "/uploads/photo.jpg"

    def test_blob_uses_image_endpoint(self):
        source = classify_source(b"\xff\xd8\xff")
        assert isinstance(source, BlobImageSource)
        assert resolve_url(source, 7) == "/api/products/image/7"

    def test_external_url_kept(self):
        source = classify_source("https://cdn.example.com/a.png")
        assert isinstance(source, ExternalImageSource)
        assert resolve_url(source, 7) == "https://cdn.example.com/a.png"

    def test_absolute_path_kept(self):
        assert resolve_url(PathImageSource(path="/static/a.png"), 1) == "/static/a.png"

    @pytest.mark.parametrize("raw", [None, "", "   ", b""])
    def test_empty_references_are_unresolvable(self, raw):
        assert classify_source(raw) is None

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError):
            classify_source(42)


class TestUploadPath:
    def test_strips_prefixes(self, tmp_path):
        for raw in ("photo.jpg", "uploads/photo.jpg", "/uploads/photo.jpg"):
            assert resolve_upload_path(raw, tmp_path) == (tmp_path / "photo.jpg").resolve()

    def test_rejects_traversal(self, tmp_path):
        assert resolve_upload_path("../../etc/passwd", tmp_path / "uploads") is None


class TestImageResolver:
    @pytest.mark.asyncio
    async def test_include_images_false_skips_store(self, repository):
        products = [make_row(1), make_row(2)]
        await ImageResolver(repository).attach(products, include_images=False)

        assert [p["images"] for p in products] == [[], []]
        assert repository.calls == []

    @pytest.mark.asyncio
    async def test_declared_images_sorted_and_deduplicated(self, repository):
        repository.images = [
            make_image(1, 11, "b.jpg", sort_order=2, alt_text="Back"),
            make_image(1, 10, "a.jpg", sort_order=1),
            make_image(1, 12, "uploads/a.jpg", sort_order=3),
            make_image(1, 13, "a.jpg", sort_order=4),
        ]
        products = [make_row(1, name="Runner")]
        await ImageResolver(repository).attach(products)

        images = products[0]["images"]
        assert [(i.id, i.url, i.alt, i.order) for i in images] == [
            (10, "/uploads/a.jpg", "Runner", 1),
            (11, "/uploads/b.jpg", "Back", 2),
        ]

    @pytest.mark.asyncio
    async def test_variant_images_only_for_products_without_declared(self, repository):
        repository.images = [make_image(1, 10, "main.jpg")]
        repository.variants = {
            1: [{"variant_id": 5, "product_id": 1, "image_url": "v1.jpg"}],
            2: [
                {"variant_id": 6, "product_id": 2, "image_url": "red.jpg"},
                {"variant_id": 7, "product_id": 2, "image_url": None},
            ],
        }
        products = [make_row(1), make_row(2, name="Tee")]
        await ImageResolver(repository).attach(products)

        assert [i.url for i in products[0]["images"]] == ["/uploads/main.jpg"]
        assert [(i.id, i.url, i.alt, i.order) for i in products[1]["images"]] == [
            (6, "/uploads/red.jpg", "Tee", 0)
        ]
        assert ("fetch_variant_images", (2,)) in repository.calls

    @pytest.mark.asyncio
    async def test_identical_variant_images_yield_one_image(self, repository):
        repository.variants = {
            3: [
                {"variant_id": 1, "product_id": 3, "image_url": "shared.jpg"},
                {"variant_id": 2, "product_id": 3, "image_url": "shared.jpg"},
            ]
        }
        products = [make_row(3)]
        await ImageResolver(repository).attach(products)

        assert len(products[0]["images"]) == 1

    @pytest.mark.asyncio
    async def test_missing_id_becomes_zero(self, repository):
        repository.images = [make_image(1, None, "a.jpg")]
        products = [make_row(1)]
        await ImageResolver(repository).attach(products)

        assert products[0]["images"][0].id == 0

    @pytest.mark.asyncio
    async def test_no_images_gives_empty_list(self, repository):
        products = [make_row(9)]
        await ImageResolver(repository).attach(products)
        assert products[0]["images"] == []

    @pytest.mark.asyncio
    async def test_failure_isolated_to_one_product(self, repository):
        repository.images = [make_image(1, 10, "one.jpg"), make_image(2, 20, "two.jpg")]
        repository.failing_image_products = {2}
        products = [make_row(1), make_row(2)]

        outcomes = await ImageResolver(repository).resolve_batch(products)

        assert isinstance(outcomes[0], ResolvedImages)
        assert [i.url for i in outcomes[0].images] == ["/uploads/one.jpg"]
        assert isinstance(outcomes[1], ImageResolutionFailure)
        assert outcomes[1].product_id == 2

    @pytest.mark.asyncio
    async def test_attach_degrades_failed_product_to_empty(self, repository):
        repository.images = [make_image(1, 10, "one.jpg")]
        repository.failing_image_products = {2}
        products = [make_row(1), make_row(2)]

        await ImageResolver(repository).attach(products)

        assert [i.url for i in products[0]["images"]] == ["/uploads/one.jpg"]
        assert products[1]["images"] == []

    def test_variant_image_entry(self):
        image = ImageResolver.variant_image(
            {"variant_id": 4, "product_id": 1, "image_url": "uploads/v.jpg"}, alt="Tee - red"
        )
        assert image.id == "variant-img-4"
        assert image.url == "/uploads/v.jpg"
        assert image.alt == "Tee - red"

    def test_variant_without_image(self):
        assert ImageResolver.variant_image({"variant_id": 4, "product_id": 1, "image_url": None}, alt="") is None

    def test_blob_variant_image_skipped(self):
        variant = {"variant_id": 4, "product_id": 1, "image_url": b"\xff\xd8\xff"}
        assert ImageResolver.variant_image(variant, alt="Tee - red") is None

    @pytest.mark.asyncio
    async def test_malformed_row_isolated_to_its_product(self, repository):
        repository.images = [make_image(1, 10, "one.jpg"), make_image(2, 20, "two.jpg", alt_text=123)]
        products = [make_row(1), make_row(2)]

        outcomes = await ImageResolver(repository).resolve_batch(products)

        assert [i.url for i in outcomes[0].images] == ["/uploads/one.jpg"]
        assert isinstance(outcomes[1], ImageResolutionFailure)
        assert ("fetch_declared_images", (1, 2)) in repository.calls
        assert ("fetch_declared_images", (2,)) in repository.calls
