from faker import Faker
from faker.providers import BaseProvider

from cellar.core.records import GRAPE_VARIETIES, CommodityType, TankMaterial


class WineryProvider(BaseProvider):
    """
    酒庄演示数据生成器
    地块名、酒罐编号、常用酿酒辅料
    """

    # 地块名前缀 (lieux-dits)
    plot_prefixes = [
        'Clos', 'Coteau', 'Les Hauts de', 'La Combe', 'Le Champ', 'Les Terrasses de',
        'La Côte', 'Le Vallon', 'Les Pierres de', 'Le Plateau'
    ]

    tank_prefixes = ['Cuve', 'Foudre', 'Cuve béton', 'Cuve inox']

    # (名称, 单位, 类别)
    consumables = [
        ('SO2', 'g', CommodityType.STABILIZATION_CLARIFICATION),
        ('Levures sèches', 'g', CommodityType.FERMENTATION_ADDITIVES),
        ('Nutriment azoté', 'g', CommodityType.FERMENTATION_ADDITIVES),
        ('Bentonite', 'kg', CommodityType.STABILIZATION_CLARIFICATION),
        ('Acide tartrique', 'kg', CommodityType.ORGANOLEPTIC_CORRECTION),
        ('Tanin', 'g', CommodityType.ORGANOLEPTIC_CORRECTION),
        ('Plaques filtrantes', 'u', CommodityType.FILTRATION),
        ('Bouchons', 'u', CommodityType.PACKAGING),
        ('Bouteilles 75cl', 'u', CommodityType.PACKAGING),
        ('Kit analyse SO2', 'u', CommodityType.ANALYSIS_LAB),
    ]

    def plot_name(self):
        return f"{self.random_element(self.plot_prefixes)} {self.generator.city()}"

    def tank_name(self, number):
        return f"{self.random_element(self.tank_prefixes)} {number:02d}"

    def tank_material(self):
        return self.random_element(TankMaterial.ALL)

    def grape_variety(self):
        return self.random_element(GRAPE_VARIETIES)

    def winery_consumable(self):
        return self.random_element(self.consumables)


# 初始化 Faker 并添加自定义 Provider
fake = Faker('fr_FR')
fake.add_provider(WineryProvider)
