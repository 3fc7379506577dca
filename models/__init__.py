from .reading import AdvertisementEvent, Reading

__all__ = ["AdvertisementEvent", "Reading"]
