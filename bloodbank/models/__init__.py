from bloodbank.models.hospital import Hospital, Admin
from bloodbank.models.inventory import RedBloodBag, PlasmaBag, PlateletsBag, SurplusTransfer
