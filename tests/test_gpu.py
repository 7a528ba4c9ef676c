import pytest

from hostagent.dependencies import Dependencies, GraphicsCard, PCIProduct, PCIVendor
from hostagent.gpu import get_gpus
from hostagent.models import Gpu

CARD1 = GraphicsCard(
    address="0000:00:02.0",
    product=PCIProduct(vendor_id="8086", id="3ea0", name="UHD Graphics 620 (Whiskey Lake)"),
    vendor=PCIVendor(name="Intel Corporation", id="8086"),
)
CARD2 = GraphicsCard(
    address="0000:00:03.0",
    product=PCIProduct(vendor_id="1111", id="0000", name="Some GPU"),
    vendor=PCIVendor(name="Other Vendor", id="1111"),
)
GPU1 = Gpu(
    address="0000:00:02.0",
    name="UHD Graphics 620 (Whiskey Lake)",
    device_id="3ea0",
    vendor="Intel Corporation",
    vendor_id="8086",
)
GPU2 = Gpu(address="0000:00:03.0", name="Some GPU", device_id="0000", vendor="Other Vendor", vendor_id="1111")


def test_one_gpu():
    assert get_gpus(Dependencies(gpu_source=lambda: [CARD1])) == [GPU1]


def test_multiple_gpus():
    assert get_gpus(Dependencies(gpu_source=lambda: [CARD1, CARD2])) == [GPU1, GPU2]


def test_error_is_handled():
    def failing():
        raise OSError("boom")

    assert get_gpus(Dependencies(gpu_source=failing)) == []


def test_no_source_gives_empty_list():
    assert get_gpus(Dependencies()) == []


@pytest.mark.parametrize(
    ("card", "expected"),
    [
        (GraphicsCard(address="0000:00:02.0"), Gpu(address="0000:00:02.0")),
        (
            GraphicsCard(address="0000:00:02.0", vendor=PCIVendor(name="Intel Corporation", id="8086")),
            Gpu(address="0000:00:02.0", vendor="Intel Corporation", vendor_id="8086"),
        ),
        (
            GraphicsCard(
                address="0000:00:02.0",
                product=PCIProduct(name="UHD Graphics 620 (Whiskey Lake)", id="3ea0", vendor_id="8086"),
            ),
            Gpu(
                address="0000:00:02.0",
                vendor_id="8086",
                device_id="3ea0",
                name="UHD Graphics 620 (Whiskey Lake)",
            ),
        ),
    ],
    ids=["missing device info", "missing product info", "missing vendor info"],
)
def test_incomplete_data(card, expected):
    assert get_gpus(Dependencies(gpu_source=lambda: [card])) == [expected]