"""
Тесты бэкапов и переноса данных между базами.
"""

import json
import os
from datetime import datetime

import pytest
from sqlalchemy.orm import Session

from factories import make_category, make_product, make_user
from storefront.db.database import build_engine
from storefront.db.models import Base, Category, Product, User
from storefront.services import backup_service


@pytest.fixture
def file_engine(tmp_path):
    engines = []

    def factory(name):
        engine = build_engine(f"sqlite:///{tmp_path / name}")
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.dispose()


@pytest.fixture
def source(file_engine):
    engine = file_engine("source.db")
    Base.metadata.create_all(bind=engine)
    with Session(engine) as session:
        make_user(session)
        category = make_category(session)
        make_product(session, category_id=category.id, sizes=["S"], tags=["silk"])
        make_product(session, name="Wool Coat", price_cents=12000)
    return engine


class TestBackupFilename:
    def test_plain(self):
        name = backup_service.backup_filename(now=datetime(2024, 3, 9, 14, 5, 7))

        assert name == "backup_2024-03-09_14-05-07.json"

    def test_description_slug(self):
        name = backup_service.backup_filename(
            " Before Summer Sale! ", now=datetime(2024, 3, 9, 14, 5, 7)
        )

        assert name == "backup_2024-03-09_14-05-07_before-summer-sale.json"

    def test_blank_description(self):
        name = backup_service.backup_filename("!!!", now=datetime(2024, 3, 9, 14, 5, 7))

        assert name == "backup_2024-03-09_14-05-07.json"


class TestBackupFiles:
    def test_write_and_load(self, source, tmp_path):
        path = backup_service.write_backup(source, str(tmp_path / "backups"), "nightly")

        assert path.name.endswith("_nightly.json")
        data = backup_service.load_backup(path)
        assert data["version"] == backup_service.FORMAT_VERSION
        assert data["description"] == "nightly"
        assert len(data["tables"]["products"]) == 2
        assert data["tables"]["users"][0]["email"] == "shopper@example.com"

    def test_list_newest_first(self, tmp_path):
        directory = tmp_path / "backups"
        directory.mkdir()
        old = directory / "backup_2024-01-01_00-00-00.json"
        new = directory / "backup_2024-02-01_00-00-00.json"
        for index, path in enumerate((old, new)):
            path.write_text("{}")
            stamp = 1_700_000_000 + index * 100
            os.utime(path, (stamp, stamp))
        (directory / "notes.json").write_text("{}")

        assert backup_service.list_backups(str(directory)) == [new, old]

    def test_list_missing_directory(self, tmp_path):
        assert backup_service.list_backups(str(tmp_path / "nope")) == []

    def test_load_rejects_other_json(self, tmp_path):
        path = tmp_path / "backup_fake.json"
        path.write_text(json.dumps({"rows": []}))

        with pytest.raises(ValueError):
            backup_service.load_backup(path)


class TestRestore:
    def test_restore_replaces_rows(self, source, tmp_path):
        path = backup_service.write_backup(source, str(tmp_path / "backups"))
        with Session(source) as session:
            session.query(Product).filter(Product.name == "Wool Coat").one().stock = 99
            make_product(session, name="Added Later")
            session.commit()

        restored = backup_service.restore_tables(source, backup_service.load_backup(path))

        assert restored["products"] == 2
        with Session(source) as session:
            coat = session.query(Product).filter(Product.name == "Wool Coat").one()
            assert coat.stock == 3
            assert session.query(Product).count() == 2
            assert isinstance(coat.created_at, datetime)

    def test_restore_into_empty_database(self, source, file_engine, tmp_path):
        path = backup_service.write_backup(source, str(tmp_path / "backups"))
        target = file_engine("restored.db")

        backup_service.restore_tables(target, backup_service.load_backup(path))

        with Session(target) as session:
            product = session.query(Product).filter(Product.name == "Silk Slip Dress").one()
            assert product.sizes == ["S"]
            assert product.category.slug == "dresses"
            assert session.query(User).count() == 1


class TestCopyTables:
    def test_dry_run(self, source, file_engine):
        target = file_engine("target.db")

        report = backup_service.copy_tables(source, target, dry_run=True)

        assert report["products"] == {"source": 2, "target": 0}
        assert backup_service.existing_tables(target) == []

    def test_copy_in_batches(self, source, file_engine):
        target = file_engine("target.db")
        seen = []

        def progress(rows, name):
            seen.append(name)
            return rows

        report = backup_service.copy_tables(source, target, batch_size=1, progress=progress)

        assert report["products"] == {"source": 2, "target": 2}
        assert report["categories"] == {"source": 1, "target": 1}
        assert seen.index("categories") < seen.index("products")
        with Session(target) as session:
            assert session.query(Category).one().name == "Dresses"

    def test_copy_overwrites_target(self, source, file_engine):
        target = file_engine("target.db")
        Base.metadata.create_all(bind=target)
        with Session(target) as session:
            make_product(session, name="Stale Row")

        backup_service.copy_tables(source, target)

        with Session(target) as session:
            names = sorted(p.name for p in session.query(Product).all())
        assert names == ["Silk Slip Dress", "Wool Coat"]
