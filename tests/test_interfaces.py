from conftest import FakeMessenger, InMemoryOrderStore, InMemoryRecipientStore, InMemoryTemplateStore
from core.interfaces import Messenger, OrderStore, RecipientStore, TemplateStore
from notifications.repositories import TemplateRepository
from notifications.telegram import TelegramMessenger
from trading.repositories import OrderRepository
from user.repositories import RecipientRepository


def test_orm_repositories_satisfy_store_protocols():
    assert isinstance(OrderRepository(), OrderStore)
    assert isinstance(RecipientRepository(), RecipientStore)
    assert isinstance(TemplateRepository(), TemplateStore)
    assert isinstance(TelegramMessenger(token="t"), Messenger)


def test_test_doubles_satisfy_store_protocols():
    assert isinstance(InMemoryOrderStore(), OrderStore)
    assert isinstance(InMemoryRecipientStore(), RecipientStore)
    assert isinstance(InMemoryTemplateStore(), TemplateStore)
    assert isinstance(FakeMessenger(), Messenger)
