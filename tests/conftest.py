from datetime import datetime

import pytest
from loguru import logger
from sqlalchemy import create_engine, insert

from schema import (
    Album,
    Customer,
    Employee,
    Genre,
    Invoice,
    InvoiceLine,
    Track,
    metadata,
)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'chinook.db'}")
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seed(engine):
    def _seed(table, rows):
        with engine.begin() as conn:
            conn.execute(insert(table), rows)
    return _seed


@pytest.fixture
def test_logger():
    return logger


def _track(track_id, album_id, genre_id, milliseconds, unit_price=0.99):
    return {
        "TrackId": track_id,
        "Name": f"Track {track_id}",
        "AlbumId": album_id,
        "GenreId": genre_id,
        "Milliseconds": milliseconds,
        "UnitPrice": unit_price,
    }


@pytest.fixture
def store(seed):
    """
    A small Chinook slice exercising every catalog question.

    Album 1 (Rock) has 3 tracks, album 2 (Jazz) 2, album 3 (Blues) 1.
    Jane Peacock looks after customers 1 and 2, Steve Johnson after 3 and 4.
    """
    seed(Genre, [
        {"GenreId": 1, "Name": "Rock"},
        {"GenreId": 2, "Name": "Jazz"},
        {"GenreId": 3, "Name": "Blues"},
    ])
    seed(Album, [
        {"AlbumId": 1, "Title": "For Those About To Rock", "ArtistId": 1},
        {"AlbumId": 2, "Title": "Kind of Blue", "ArtistId": 2},
        {"AlbumId": 3, "Title": "Blue Train", "ArtistId": 3},
    ])
    seed(Track, [
        _track(1, 1, 1, 200000),
        _track(2, 1, 1, 400000),
        _track(3, 1, 1, 300000),
        _track(4, 2, 2, 420000),
        _track(5, 2, 2, 100000),
        _track(6, 3, 3, 250000, unit_price=1.99),
    ])
    seed(Employee, [
        {"EmployeeId": 1, "FirstName": "Jane", "LastName": "Peacock", "Title": "Sales Support Agent"},
        {"EmployeeId": 2, "FirstName": "Steve", "LastName": "Johnson", "Title": "Sales Support Agent"},
    ])
    seed(Customer, [
        {"CustomerId": 1, "FirstName": "Luís", "LastName": "Gonçalves", "Country": "Brazil", "SupportRepId": 1},
        {"CustomerId": 2, "FirstName": "Leonie", "LastName": "Köhler", "Country": "Germany", "SupportRepId": 1},
        {"CustomerId": 3, "FirstName": "François", "LastName": "Tremblay", "Country": "Canada", "SupportRepId": 2},
        {"CustomerId": 4, "FirstName": "Bjørn", "LastName": "Hansen", "Country": "Norway", "SupportRepId": 2},
    ])
    seed(Invoice, [
        {"InvoiceId": 1, "CustomerId": 1, "InvoiceDate": datetime(2022, 1, 10), "BillingCountry": "Brazil", "Total": 2.97},
        {"InvoiceId": 2, "CustomerId": 2, "InvoiceDate": datetime(2022, 3, 5), "BillingCountry": "Germany", "Total": 0.99},
        {"InvoiceId": 3, "CustomerId": 1, "InvoiceDate": datetime(2022, 2, 12), "BillingCountry": "Brazil", "Total": 1.99},
        {"InvoiceId": 4, "CustomerId": 3, "InvoiceDate": datetime(2023, 5, 20), "BillingCountry": "Canada", "Total": 0.99},
        {"InvoiceId": 5, "CustomerId": 2, "InvoiceDate": datetime(2023, 7, 1), "BillingCountry": "Germany", "Total": 0.99},
        {"InvoiceId": 6, "CustomerId": 4, "InvoiceDate": datetime(2024, 1, 31), "BillingCountry": "Norway", "Total": 0.99},
    ])
    seed(InvoiceLine, [
        {"InvoiceLineId": 1, "InvoiceId": 1, "TrackId": 1, "UnitPrice": 0.99, "Quantity": 1},
        {"InvoiceLineId": 2, "InvoiceId": 1, "TrackId": 2, "UnitPrice": 0.99, "Quantity": 1},
        {"InvoiceLineId": 3, "InvoiceId": 1, "TrackId": 3, "UnitPrice": 0.99, "Quantity": 1},
        {"InvoiceLineId": 4, "InvoiceId": 2, "TrackId": 4, "UnitPrice": 0.99, "Quantity": 1},
        {"InvoiceLineId": 5, "InvoiceId": 3, "TrackId": 6, "UnitPrice": 1.99, "Quantity": 1},
        {"InvoiceLineId": 6, "InvoiceId": 4, "TrackId": 5, "UnitPrice": 0.99, "Quantity": 1},
        {"InvoiceLineId": 7, "InvoiceId": 5, "TrackId": 5, "UnitPrice": 0.99, "Quantity": 1},
        {"InvoiceLineId": 8, "InvoiceId": 6, "TrackId": 1, "UnitPrice": 0.99, "Quantity": 1},
    ])
