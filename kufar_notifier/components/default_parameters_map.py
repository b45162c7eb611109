"""
Built-in filter map used when a marketplace page cannot be resolved.

Covers the filter parameters shared by the Kufar listing sections
(general goods, real estate and vehicles).
"""

DEFAULT_PARAMETERS_MAP = {
    "cat": "Категория",
    "prn": "Родительская категория",
    "rgn": "Область",
    "ar": "Район",
    "cur": "Валюта",
    "prc": "Цена",
    "cmp": "Тип продавца",
    "oph": "Только с фото",
    "dle": "С доставкой",
    "sde": "Безопасная сделка",
    "cnd": "Состояние",
    "typ": "Тип объявления",
    "rms": "Количество комнат",
    "flr": "Этаж",
    "fls": "Этажность",
    "yb": "Год постройки",
    "mkr": "Метро",
    "gbx": "Коробка передач",
    "rgd": "Год выпуска",
    "mlg": "Пробег",
    "cbnd": "Марка",
    "cmdl": "Модель",
}
