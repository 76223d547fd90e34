from .protocol import Peptide, ProtocolRecord, ProtocolItemRecord, InjectionSite
from .dose import Dose
from .inventory import InventoryVial, InventoryCapsule
